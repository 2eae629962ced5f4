"""
Authenticated reverse proxy to the Printful API.

/api/printful/<path> is forwarded to PRINTFUL_API_BASE/<path> with the
bearer token added here, so browser code can call the API without ever
seeing the key. Query string, body and content type pass through
unchanged.
"""

from flask import Blueprint, Response, current_app, jsonify, request
import httpx

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

proxy_bp = Blueprint("proxy", __name__)

# Connection-level headers that must not be forwarded (RFC 7230 section 6.1)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Recomputed by the client library on each side
RESPONSE_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding", "content-length"}

FORWARDED_REQUEST_HEADERS = ("Content-Type", "Accept", "X-PF-Store-Id")


@proxy_bp.route(
    "/api/printful/<path:path>",
    methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
)
def printful_proxy(path: str):
    """Forward the request upstream with the server-side API key."""
    base_url = current_app.config["PRINTFUL_API_BASE"].rstrip("/")
    api_key = current_app.config.get("PRINTFUL_API_KEY", "")

    headers = {
        name: request.headers[name]
        for name in FORWARDED_REQUEST_HEADERS
        if name in request.headers
    }
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    else:
        logger.warning("PRINTFUL_API_KEY not set; proxying without credentials")

    url = f"{base_url}/{path}"
    logger.debug(f"Proxy {request.method} {url}")

    try:
        with httpx.Client(
            timeout=httpx.Timeout(current_app.config.get("HTTP_TIMEOUT_SECONDS", 30.0)),
            transport=current_app.config.get("HTTP_TRANSPORT"),
        ) as client:
            upstream = client.request(
                request.method,
                url,
                params=list(request.args.items(multi=True)),
                content=request.get_data(),
                headers=headers,
            )
    except httpx.HTTPError as e:
        logger.error(f"Proxy request to {url} failed: {e}")
        return jsonify({"error": f"Could not reach Printful: {e}"}), 502

    response_headers = [
        (name, value)
        for name, value in upstream.headers.items()
        if name.lower() not in RESPONSE_SKIP_HEADERS
    ]
    return Response(upstream.content, status=upstream.status_code, headers=response_headers)
