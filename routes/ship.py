"""
Ship step routes (JSON).

Handles:
- /api/ship/prepare   - Start a fresh order session for the artwork
- /api/ship/status    - Current session snapshot (polled by the UI)
- /api/ship/estimates - Re-run shipping/cost estimates for an address
- /api/ship/order     - Create the draft order
- /api/ship/confirm   - Confirm (charge) the draft
- /api/ship/dispose   - User left the ship step

The wizard session id lives in the Flask session; the orchestrator it points
to lives in the OrderSessionRegistry and runs on the workflow loop. Request
threads only ever block on runner.run() for the result.
"""

from typing import Any, Dict, Optional, Tuple

import bleach
from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
    session,
)

from core.exceptions import (
    ArtPrintError,
    OrderError,
    OrderStateError,
    RecipientValidationError,
)
from models.recipient import Recipient
from services.session_registry import new_session_id
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

ship_bp = Blueprint("ship", __name__, url_prefix="/api/ship")

# Constants
SESSION_KEY = "wizard_id"
MAX_FIELD_LENGTH = 200
MAX_URL_LENGTH = 2048
RECIPIENT_FIELDS = ("name", "address1", "address", "city", "state_code", "state", "zip",
                    "country_code", "country")


def _sanitize_text(text: Any, max_length: int = None) -> str:
    """Sanitize user input text."""
    if not text:
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _recipient_from_json(data: Optional[Dict[str, Any]]) -> Optional[Recipient]:
    """Build a Recipient from the ship form, markup stripped."""
    if not isinstance(data, dict):
        return None
    cleaned = {
        key: _sanitize_text(data.get(key), MAX_FIELD_LENGTH)
        for key in RECIPIENT_FIELDS
        if data.get(key)
    }
    return Recipient.from_dict(cleaned)


def _services():
    return current_app.config["WORKFLOW_RUNNER"], current_app.config["ORDER_SESSIONS"]


def _wait_seconds() -> float:
    return current_app.config.get("WORKFLOW_WAIT_SECONDS", 90.0)


def _current_orchestrator():
    _, registry = _services()
    return registry.get(session.get(SESSION_KEY))


def _snapshot(orchestrator) -> Dict[str, Any]:
    """Read the snapshot on the workflow loop, where the state is mutated."""
    runner, _ = _services()
    return runner.call(orchestrator.snapshot, timeout=_wait_seconds())


def _no_session() -> Tuple[Any, int]:
    return jsonify({"error": "No active order session. Please prepare the order first."}), 404


def _error_response(e: ArtPrintError, orchestrator=None) -> Tuple[Any, int]:
    """Translate a workflow exception into a JSON error."""
    body: Dict[str, Any] = {"error": e.message}

    if isinstance(e, RecipientValidationError):
        body["missing_fields"] = e.missing_fields
        status = 400
    elif isinstance(e, OrderStateError):
        body["state"] = e.state
        status = 409
    elif isinstance(e, OrderError):
        status = 502
    else:
        status = 500

    if orchestrator is not None:
        body["snapshot"] = _snapshot(orchestrator)
    return jsonify(body), status


@ship_bp.route("/prepare", methods=["POST"])
def prepare():
    """
    Start a fresh order session.

    Body: {image: <data URI or base64>, product: "MUG", preview_url?, recipient?}

    Any previous session for this browser is disposed first, which cancels
    its mockup poll.
    """
    data = request.get_json(silent=True) or {}
    image = data.get("image") or data.get("base64")
    if not image or not isinstance(image, str):
        return jsonify({"error": "Missing artwork image data"}), 400

    product = data.get("product")
    if not product:
        return jsonify({"error": "Missing product"}), 400

    preview_url = _sanitize_text(data.get("preview_url"), MAX_URL_LENGTH) or None
    recipient = _recipient_from_json(data.get("recipient"))

    runner, registry = _services()
    session_id = session.get(SESSION_KEY) or new_session_id()
    session[SESSION_KEY] = session_id

    try:
        orchestrator = registry.create(session_id)
        logger.info(f"Preparing order for session {session_id[:8]} ({product})")
        snapshot = runner.run(
            orchestrator.prepare(image, product, preview_url=preview_url, recipient=recipient),
            timeout=_wait_seconds(),
        )
        return jsonify(snapshot)

    except ValueError as e:
        registry.dispose(session_id)
        return jsonify({"error": str(e)}), 400
    except ArtPrintError as e:
        return _error_response(e)
    except TimeoutError as e:
        logger.error(f"Prepare timed out: {e}")
        return jsonify({"error": str(e)}), 504


@ship_bp.route("/status", methods=["GET"])
def status():
    """Current snapshot of the session's order workflow."""
    orchestrator = _current_orchestrator()
    if orchestrator is None:
        return _no_session()

    return jsonify(_snapshot(orchestrator))


@ship_bp.route("/estimates", methods=["POST"])
def estimates():
    """Refresh shipping and cost estimates for the address in the body."""
    orchestrator = _current_orchestrator()
    if orchestrator is None:
        return _no_session()

    recipient = _recipient_from_json(request.get_json(silent=True))
    if recipient is None:
        return jsonify({"error": "Missing shipping address"}), 400

    runner, _ = _services()
    try:
        snapshot = runner.run(orchestrator.refresh_estimates(recipient), timeout=_wait_seconds())
        return jsonify(snapshot)
    except ArtPrintError as e:
        return _error_response(e, orchestrator)
    except TimeoutError as e:
        return jsonify({"error": str(e)}), 504


@ship_bp.route("/order", methods=["POST"])
def place_order():
    """
    Create the draft order.

    Returns the snapshot with the DRAFT order on success. A rejection from
    the fulfillment service leaves the session READY so the user can fix
    the address and resubmit.
    """
    orchestrator = _current_orchestrator()
    if orchestrator is None:
        return _no_session()

    recipient = _recipient_from_json(request.get_json(silent=True))
    if recipient is None:
        return jsonify({"error": "Missing shipping address"}), 400

    runner, _ = _services()
    try:
        runner.run(orchestrator.place_order(recipient), timeout=_wait_seconds())
        return jsonify(_snapshot(orchestrator))
    except ArtPrintError as e:
        logger.warning(f"Place order rejected: {e.message}")
        return _error_response(e, orchestrator)
    except TimeoutError as e:
        logger.error(f"Place order timed out: {e}")
        return jsonify({"error": str(e)}), 504


@ship_bp.route("/confirm", methods=["POST"])
def confirm():
    """Confirm the draft. Charges the account; cannot be undone."""
    orchestrator = _current_orchestrator()
    if orchestrator is None:
        return _no_session()

    runner, _ = _services()
    try:
        runner.run(orchestrator.confirm_order(), timeout=_wait_seconds())
        return jsonify(_snapshot(orchestrator))
    except ArtPrintError as e:
        logger.warning(f"Confirm rejected: {e.message}")
        return _error_response(e, orchestrator)
    except TimeoutError as e:
        logger.error(f"Confirm timed out: {e}")
        return jsonify({"error": str(e)}), 504


@ship_bp.route("/dispose", methods=["POST"])
def dispose():
    """Tear down the session's orchestrator (navigate-away)."""
    _, registry = _services()
    session_id = session.pop(SESSION_KEY, None)
    disposed = registry.dispose(session_id)
    return jsonify({"disposed": disposed})
