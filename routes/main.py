"""
Main routes (health, lookup tables).

Small read-only JSON endpoints used by the UI and by monitoring.
"""

from flask import Blueprint, current_app, jsonify

from core.fulfillment_client import FulfillmentClient, FulfillmentConfig
from models.product import PRODUCT_VARIANTS
from models.recipient import COUNTRIES, DEFAULT_COUNTRY
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

main_bp = Blueprint("main", __name__)

HEALTH_PROBE_TIMEOUT_SECONDS = 10.0


async def _probe_fulfillment(config: FulfillmentConfig, transport) -> bool:
    async with FulfillmentClient(config, transport=transport, logger=logger) as client:
        return await client.check_connection()


@main_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {},
    }

    runner = current_app.config.get("WORKFLOW_RUNNER")
    registry = current_app.config.get("ORDER_SESSIONS")

    if runner and runner.is_running:
        health_status["checks"]["workflow_loop"] = "running"
    else:
        health_status["checks"]["workflow_loop"] = "stopped"
        health_status["status"] = "degraded"

    health_status["checks"]["active_sessions"] = len(registry) if registry is not None else 0

    if not current_app.config.get("PRINTFUL_API_KEY"):
        health_status["checks"]["fulfillment"] = "not_configured"
    elif runner and runner.is_running:
        try:
            connected = runner.run(
                _probe_fulfillment(
                    FulfillmentConfig.from_mapping(current_app.config),
                    current_app.config.get("HTTP_TRANSPORT"),
                ),
                timeout=HEALTH_PROBE_TIMEOUT_SECONDS,
            )
        except TimeoutError:
            connected = False
        health_status["checks"]["fulfillment"] = "connected" if connected else "offline"
    else:
        health_status["checks"]["fulfillment"] = "unknown"

    health_status["simulated"] = health_status["checks"]["fulfillment"] != "connected"
    return jsonify(health_status)


@main_bp.route("/api/products", methods=["GET"])
def products():
    """The fixed product catalog with its Printful identifiers."""
    return jsonify({
        "products": [
            {"name": product.name, "display_name": product.value, **config.to_dict()}
            for product, config in PRODUCT_VARIANTS.items()
        ]
    })


@main_bp.route("/api/countries", methods=["GET"])
def countries():
    """Supported destination countries."""
    return jsonify({
        "default": DEFAULT_COUNTRY,
        "countries": [
            {"code": c.code, "name": c.name, "has_states": c.has_states}
            for c in COUNTRIES
        ],
    })
