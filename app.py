"""
ArtPrintWeb - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration (.env + config classes)
2. Starts the workflow event loop (separate thread)
3. Creates the order session registry
4. Registers route blueprints
5. Sets up JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (JSON only)
    └── Cleanup on shutdown (dispose sessions, stop loop)

    Workflow Thread (background)
    └── One asyncio loop running every session's order workflow:
        hosting, mockup polling, estimates, draft and confirm

The Printful API key never leaves the server: the fulfillment clients and
the /api/printful proxy add it to outgoing requests.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

import httpx
from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger, get_session_logger
from core.fulfillment_client import FulfillmentClient, FulfillmentConfig
from core.image_host import ImageHostClient
from services.order_orchestrator import OrderOrchestrator, WorkflowSettings
from services.session_registry import OrderSessionRegistry
from services.workflow_runner import WorkflowRunner
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In PyInstaller bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def _orchestrator_factory(config, transport: Optional[httpx.MockTransport]):
    """Build the per-session orchestrator factory from the app config."""
    fulfillment_config = FulfillmentConfig.from_mapping(config)
    settings = WorkflowSettings.from_mapping(config)
    upload_url = config["IMAGE_HOST_UPLOAD_URL"]
    timeout_seconds = config.get("HTTP_TIMEOUT_SECONDS", 30.0)

    def factory(session_id: str) -> OrderOrchestrator:
        session_logger = get_session_logger(session_id)
        return OrderOrchestrator(
            FulfillmentClient(fulfillment_config, transport=transport, logger=session_logger),
            ImageHostClient(
                upload_url=upload_url,
                timeout_seconds=timeout_seconds,
                transport=transport,
                logger=session_logger,
            ),
            settings=settings,
            logger=session_logger,
        )

    return factory


def create_app(
    config_object: Union[str, type] = "config.Config",
    transport: Optional[httpx.MockTransport] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Config class, or its import path
        transport: Optional httpx transport shared by every outgoing
            request (tests pass an httpx.MockTransport)

    Returns:
        Configured Flask application
    """
    # Load .env from base path (next to executable in production)
    # Use override=True so .env file always takes precedence over shell environment
    base_path = _get_base_path()
    env_file = base_path / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)  # Default behavior

    # Create Flask app
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config["HTTP_TRANSPORT"] = transport

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting ArtPrintWeb in {app.config.get('ENVIRONMENT')} mode")

    if not app.config.get("PRINTFUL_API_KEY"):
        logger.warning("PRINTFUL_API_KEY not set - orders will run in simulation mode")

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    # Workflow loop (background thread)
    runner = WorkflowRunner()
    runner.start()
    app.config["WORKFLOW_RUNNER"] = runner
    logger.info("Workflow runner started")

    # Per-session orchestrators
    registry = OrderSessionRegistry(
        _orchestrator_factory(app.config, transport),
        runner,
        idle_timeout=app.config.get("SESSION_IDLE_SECONDS"),
    )
    registry.start_sweeper(app.config.get("SESSION_SWEEP_INTERVAL_SECONDS", 60.0))
    app.config["ORDER_SESSIONS"] = registry
    logger.info("Order session registry initialized")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")

        # Dispose sessions while the loop is still running
        registry.shutdown()

        # Stop workflow loop
        runner.stop()

        logger.info("Shutdown complete")

    atexit.register(cleanup)
    app.extensions["art_print_cleanup"] = cleanup

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 32 * 1024 * 1024) / (1024 * 1024)
        return jsonify({"error": f"Request too large. Maximum size is {max_mb:.0f} MB."}), 413

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return jsonify({"error": "An unexpected error occurred. Please try again."}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode, use_reloader=False)
