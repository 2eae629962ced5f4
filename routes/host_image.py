"""
Image hosting endpoint.

POST /api/host-image with {"base64": "<data URI or raw base64>"} returns
{"url": "<public URL>"}. The browser uses it to get a URL the fulfillment
service can fetch before talking to /api/printful directly.
"""

from flask import Blueprint, current_app, jsonify, request

from core.exceptions import HostingError
from core.image_host import ImageHostClient
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

host_image_bp = Blueprint("host_image", __name__)


async def _upload(upload_url: str, timeout_seconds: float, transport, image_data: str) -> str:
    async with ImageHostClient(
        upload_url=upload_url,
        timeout_seconds=timeout_seconds,
        transport=transport,
        logger=logger,
    ) as host:
        return await host.host_image(image_data)


@host_image_bp.route("/api/host-image", methods=["POST"])
def host_image():
    """
    Upload artwork to the public image host.

    Errors are returned as {"error": message}:
        400 - no base64 field
        500 - upload failed
    """
    data = request.get_json(silent=True) or {}
    image_data = data.get("base64")
    if not image_data or not isinstance(image_data, str):
        return jsonify({"error": "Missing base64 image data"}), 400

    runner = current_app.config["WORKFLOW_RUNNER"]
    try:
        url = runner.run(
            _upload(
                current_app.config["IMAGE_HOST_UPLOAD_URL"],
                current_app.config.get("HTTP_TIMEOUT_SECONDS", 30.0),
                current_app.config.get("HTTP_TRANSPORT"),
                image_data,
            ),
            timeout=current_app.config.get("WORKFLOW_WAIT_SECONDS", 90.0),
        )
    except HostingError as e:
        logger.error(f"Image hosting failed: {e.message}")
        return jsonify({"error": e.message}), 500
    except TimeoutError as e:
        logger.error(f"Image hosting timed out: {e}")
        return jsonify({"error": "Image upload timed out"}), 500

    return jsonify({"url": url})
