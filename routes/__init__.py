"""
Flask route blueprints for ArtPrintWeb.

This module contains all route handlers organized by functionality:
- main: Health check and lookup tables (products, countries)
- host_image: Public image hosting for browser-side callers
- proxy: Authenticated reverse proxy to the Printful API
- ship: Ship step JSON API (prepare, estimates, order, confirm)

Each blueprint is registered with the Flask app in create_app().
"""

from .main import main_bp
from .host_image import host_image_bp
from .proxy import proxy_bp
from .ship import ship_bp

__all__ = [
    "main_bp",
    "host_image_bp",
    "proxy_bp",
    "ship_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(main_bp)
    app.register_blueprint(host_image_bp)
    app.register_blueprint(proxy_bp)
    app.register_blueprint(ship_bp)
