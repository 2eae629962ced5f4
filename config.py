"""
Configuration for ArtPrintWeb.

The Printful API key is held here, server-side only. It is injected by the
fulfillment client and the /api/printful reverse proxy and never rendered
into anything the browser receives.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    MAX_CONTENT_LENGTH = 32 * 1024 * 1024  # 32 MB (base64 artwork at 4K)
    SESSION_COOKIE_NAME = "art_print_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")

    # Debug mode
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # ==========================================================================
    # Fulfillment (Printful)
    # ==========================================================================
    # PRINTFUL_API_BASE: upstream base URL used by the fulfillment client and
    #   the reverse proxy.
    # PRINTFUL_API_KEY: bearer token. Never exposed to client code.
    # ==========================================================================
    PRINTFUL_API_BASE = os.environ.get("PRINTFUL_API_BASE", "https://api.printful.com")
    PRINTFUL_API_KEY = os.environ.get("PRINTFUL_API_KEY", "")

    # Public image host (anonymous, short-lived uploads)
    IMAGE_HOST_UPLOAD_URL = os.environ.get(
        "IMAGE_HOST_UPLOAD_URL", "https://tmpfiles.org/api/v1/upload"
    )

    HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "30"))

    # ==========================================================================
    # Workflow timing
    # ==========================================================================
    # Mockup polling: one poll every MOCKUP_POLL_INTERVAL_SECONDS, at most
    # MOCKUP_MAX_ATTEMPTS polls (2s x 30 = ~60s wall clock).
    #
    # SIMULATED_DELAY_SECONDS: stand-in for manufacturing latency when the
    # fulfillment service is unreachable and the flow runs in simulation.
    # ==========================================================================
    MOCKUP_POLL_INTERVAL_SECONDS = float(
        os.environ.get("MOCKUP_POLL_INTERVAL_SECONDS", "2.0")
    )
    MOCKUP_MAX_ATTEMPTS = int(os.environ.get("MOCKUP_MAX_ATTEMPTS", "30"))
    SIMULATED_DELAY_SECONDS = float(os.environ.get("SIMULATED_DELAY_SECONDS", "2.0"))

    # Max seconds a request thread waits on a workflow coroutine
    WORKFLOW_WAIT_SECONDS = float(os.environ.get("WORKFLOW_WAIT_SECONDS", "90"))

    # Order sessions untouched this long are disposed (tab closed without
    # dispose). The sweeper checks every SESSION_SWEEP_INTERVAL_SECONDS.
    SESSION_IDLE_SECONDS = float(os.environ.get("SESSION_IDLE_SECONDS", "1800"))
    SESSION_SWEEP_INTERVAL_SECONDS = float(os.environ.get("SESSION_SWEEP_INTERVAL_SECONDS", "60"))


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    PRINTFUL_API_BASE = "https://fulfillment.test"
    PRINTFUL_API_KEY = "test-key"
    IMAGE_HOST_UPLOAD_URL = "https://host.test/api/v1/upload"
    MOCKUP_POLL_INTERVAL_SECONDS = 0.0
    SIMULATED_DELAY_SECONDS = 0.0
    WORKFLOW_WAIT_SECONDS = 10.0
