"""
Shared fixtures for ArtPrintWeb tests.

Upstream services (Printful, the image host) are simulated with
httpx.MockTransport driven by a small scripted router.
"""

import json
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest

from core.fulfillment_client import FulfillmentConfig
from models.recipient import Recipient


BASE_URL = "https://fulfillment.test"
UPLOAD_URL = "https://host.test/api/v1/upload"
DATA_URI = "data:image/png;base64,AAAA"

ScriptedResponse = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response], Exception]


class ScriptedAPI:
    """
    Routes requests by (method, path) to scripted responses.

    Each route holds a queue; responses are used in order and the last one
    repeats. An entry may be a (status, body) tuple, a callable taking the
    request (async callables work with async clients), or an exception to
    raise (transport failure). Unrouted requests get a 404. Every request
    is recorded.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[ScriptedResponse]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses: ScriptedResponse) -> "ScriptedAPI":
        self.routes[(method.upper(), path)] = list(responses)
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def json_body(self, request: httpx.Request) -> Any:
        return json.loads(request.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"code": 404, "result": "Not found"})

        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(entry, Exception):
            raise entry
        if callable(entry):
            return entry(request)

        status, body = entry
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body or "")


# Canned Printful payloads

COSTS = {"subtotal": "29.99", "shipping": "4.99", "total": "34.98", "currency": "USD"}

STANDARD_RATE = {
    "id": "STANDARD",
    "name": "Flat Rate (Estimated delivery: 4-8 business days)",
    "rate": "4.99",
    "currency": "USD",
    "minDeliveryDays": 4,
    "maxDeliveryDays": 8,
}


def script_happy_path(api: ScriptedAPI) -> ScriptedAPI:
    """Every upstream call succeeds (the mug walk-through)."""
    api.add("GET", "/products", (200, {"code": 200, "result": []}))
    api.add("POST", "/api/v1/upload", (200, {"status": "success", "data": {"url": "https://h/x.png"}}))
    api.add("POST", "/mockup-generator/create-task/19",
            (200, {"code": 200, "result": {"task_key": "tk1", "status": "pending"}}))
    api.add("GET", "/mockup-generator/task", (200, {
        "code": 200,
        "result": {
            "task_key": "tk1",
            "status": "completed",
            "mockups": [{"placement": "default", "mockup_url": "https://h/mock.png"}],
        },
    }))
    api.add("POST", "/shipping/rates", (200, {"code": 200, "result": [STANDARD_RATE]}))
    api.add("POST", "/orders/estimate-costs",
            (200, {"code": 200, "result": {"costs": COSTS, "retail_costs": {}}}))
    api.add("POST", "/orders", (200, {
        "code": 200,
        "result": {
            "id": 101,
            "status": "draft",
            "costs": COSTS,
            "dashboard_url": "https://www.printful.com/dashboard?order_id=101",
        },
    }))
    api.add("POST", "/orders/101/confirm", (200, {
        "code": 200,
        "result": {"id": 101, "status": "pending", "costs": COSTS},
    }))
    return api


# Fixtures

@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def api():
    """Empty scripted upstream."""
    return ScriptedAPI()


@pytest.fixture
def happy_api():
    """Scripted upstream where every call succeeds."""
    return script_happy_path(ScriptedAPI())


@pytest.fixture
def fulfillment_config():
    return FulfillmentConfig(base_url=BASE_URL, api_key="test-key", timeout_seconds=5.0)


@pytest.fixture
def recipient():
    """A complete US recipient."""
    return Recipient(
        name="Ada Lovelace",
        address1="12 Analytical Way",
        city="Austin",
        zip="73301",
        country_code="US",
        state_code="TX",
    )
