"""
Unit tests for the Printful fulfillment client.

Each operation is checked against the request it sends and the way it
reads the response, using a scripted httpx.MockTransport.
"""

import httpx
import pytest

from core.exceptions import FulfillmentError
from core.fulfillment_client import FulfillmentClient, FulfillmentConfig
from models.mockup import MockupStatus
from models.order import OrderState
from models.product import ProductType

from conftest import COSTS, STANDARD_RATE


# Fixtures

@pytest.fixture
def make_client(api, fulfillment_config):
    """Build clients bound to the scripted upstream."""
    def _make(config=None):
        return FulfillmentClient(config or fulfillment_config, transport=api.transport)
    return _make


class TestFulfillmentConfig:
    """Tests for building the client config from app settings."""

    def test_from_mapping(self):
        config = FulfillmentConfig.from_mapping({
            "PRINTFUL_API_BASE": "https://proxy.local/api/printful",
            "PRINTFUL_API_KEY": "abc",
            "HTTP_TIMEOUT_SECONDS": "12",
        })
        assert config.base_url == "https://proxy.local/api/printful"
        assert config.api_key == "abc"
        assert config.timeout_seconds == 12.0

    def test_defaults(self):
        config = FulfillmentConfig.from_mapping({})
        assert config.base_url == "https://api.printful.com"
        assert config.api_key == ""


class TestCheckConnection:
    """Tests for the connectivity probe."""

    @pytest.mark.anyio
    async def test_success_sends_bearer_token(self, api, make_client):
        api.add("GET", "/products", (200, {"code": 200, "result": []}))

        async with make_client() as client:
            assert await client.check_connection() is True

        assert api.requests[0].headers["authorization"] == "Bearer test-key"

    @pytest.mark.anyio
    async def test_auth_failure_returns_false(self, api, make_client):
        api.add("GET", "/products", (401, {"code": 401, "result": "Unauthorized"}))

        async with make_client() as client:
            assert await client.check_connection() is False

    @pytest.mark.anyio
    async def test_network_failure_returns_false(self, api, make_client):
        api.add("GET", "/products", httpx.ConnectError("unreachable"))

        async with make_client() as client:
            assert await client.check_connection() is False

    @pytest.mark.anyio
    async def test_no_key_sends_no_authorization(self, api, make_client):
        api.add("GET", "/products", (200, {"code": 200, "result": []}))

        async with make_client(FulfillmentConfig(base_url="https://fulfillment.test")) as client:
            await client.check_connection()

        assert "authorization" not in api.requests[0].headers


class TestMockupTasks:
    """Tests for mockup task creation and polling."""

    @pytest.mark.anyio
    @pytest.mark.parametrize("product,variant_id,product_id,placement", [
        (ProductType.TSHIRT, 4012, 71, "front"),
        (ProductType.MUG, 1320, 19, "default"),
        (ProductType.CANVAS, 5, 3, "default"),
        (ProductType.TOTE, 10457, 367, "front"),
    ])
    async def test_create_task_uses_product_table(
        self, api, make_client, product, variant_id, product_id, placement
    ):
        path = f"/mockup-generator/create-task/{product_id}"
        api.add("POST", path, (200, {"code": 200, "result": {"task_key": "tk1"}}))

        async with make_client() as client:
            task_key = await client.create_mockup_task("https://h/x.png", product)

        assert task_key == "tk1"
        body = api.json_body(api.calls("POST", path)[0])
        assert body == {
            "variant_ids": [variant_id],
            "format": "png",
            "files": [{"placement": placement, "image_url": "https://h/x.png"}],
        }

    @pytest.mark.anyio
    async def test_create_task_rejected(self, api, make_client):
        api.add("POST", "/mockup-generator/create-task/19",
                (400, {"code": 400, "result": "Invalid image URL"}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError) as exc_info:
                await client.create_mockup_task("https://h/x.png", "MUG")

        assert exc_info.value.message == "Invalid image URL"
        assert exc_info.value.http_status == 400

    @pytest.mark.anyio
    async def test_create_task_without_key(self, api, make_client):
        api.add("POST", "/mockup-generator/create-task/19", (200, {"code": 200, "result": {}}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="no task key"):
                await client.create_mockup_task("https://h/x.png", "MUG")

    @pytest.mark.anyio
    async def test_poll_sends_task_key(self, api, make_client):
        api.add("GET", "/mockup-generator/task", (200, {
            "code": 200,
            "result": {"task_key": "tk1", "status": "completed",
                       "mockups": [{"mockup_url": "https://h/mock.png"}]},
        }))

        async with make_client() as client:
            task = await client.poll_mockup_task("tk1")

        assert api.requests[0].url.params["task_key"] == "tk1"
        assert task.status == MockupStatus.COMPLETED
        assert task.result_urls == ["https://h/mock.png"]


class TestEstimates:
    """Tests for shipping and cost estimates."""

    @pytest.mark.anyio
    async def test_shipping_rates(self, api, make_client, recipient):
        api.add("POST", "/shipping/rates", (200, {"code": 200, "result": [STANDARD_RATE]}))

        async with make_client() as client:
            rates = await client.estimate_shipping_rates(recipient, "TSHIRT")

        assert len(rates) == 1
        assert rates[0].rate == "4.99"
        assert rates[0].min_delivery_days == 4

        body = api.json_body(api.requests[0])
        assert "name" not in body["recipient"]
        assert body["recipient"]["state_code"] == "TX"
        assert body["items"] == [{"variant_id": 4012, "quantity": 1}]

    @pytest.mark.anyio
    async def test_order_costs(self, api, make_client, recipient):
        api.add("POST", "/orders/estimate-costs", (200, {"code": 200, "result": {"costs": COSTS}}))

        async with make_client() as client:
            costs = await client.estimate_order_costs(recipient, "https://h/x.png", "CANVAS")

        assert costs.subtotal == "29.99"
        assert costs.total == "34.98"

        body = api.json_body(api.requests[0])
        assert body["recipient"]["name"] == "Ada Lovelace"
        assert body["items"] == [{"variant_id": 5, "quantity": 1, "files": [{"url": "https://h/x.png"}]}]

    @pytest.mark.anyio
    async def test_estimate_error_message_from_error_object(self, api, make_client, recipient):
        api.add("POST", "/shipping/rates",
                (400, {"code": 400, "error": {"reason": "BadRequest", "message": "Invalid zip"}}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="Invalid zip"):
                await client.estimate_shipping_rates(recipient, "MUG")


class TestMalformedSuccessReplies:
    """A 2xx reply whose result has the wrong shape is a FulfillmentError."""

    @pytest.mark.anyio
    async def test_shipping_rates_result_is_an_object(self, api, make_client, recipient):
        api.add("POST", "/shipping/rates", (200, {"code": 200, "result": {"unexpected": "shape"}}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError) as exc_info:
                await client.estimate_shipping_rates(recipient, "MUG")

        assert exc_info.value.message == "Failed to estimate shipping: unexpected response"
        assert exc_info.value.operation == "estimate_shipping_rates"

    @pytest.mark.anyio
    async def test_shipping_rates_entries_are_not_objects(self, api, make_client, recipient):
        api.add("POST", "/shipping/rates", (200, {"code": 200, "result": ["STANDARD"]}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="unexpected response"):
                await client.estimate_shipping_rates(recipient, "MUG")

    @pytest.mark.anyio
    async def test_poll_result_is_a_string(self, api, make_client):
        api.add("GET", "/mockup-generator/task", (200, {"code": 200, "result": "busy"}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="Failed to poll mockup task: unexpected response"):
                await client.poll_mockup_task("tk1")

    @pytest.mark.anyio
    async def test_create_task_result_is_a_list(self, api, make_client):
        api.add("POST", "/mockup-generator/create-task/19", (200, {"code": 200, "result": ["tk1"]}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="unexpected response"):
                await client.create_mockup_task("https://h/x.png", "MUG")

    @pytest.mark.anyio
    async def test_costs_is_not_an_object(self, api, make_client, recipient):
        api.add("POST", "/orders/estimate-costs", (200, {"code": 200, "result": {"costs": "34.98"}}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="no costs returned"):
                await client.estimate_order_costs(recipient, "https://h/x.png", "MUG")

    @pytest.mark.anyio
    async def test_draft_result_is_a_string(self, api, make_client, recipient):
        api.add("POST", "/orders", (200, {"code": 200, "result": "created"}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="Failed to create order: unexpected response"):
                await client.create_draft_order(recipient, "https://h/x.png", "MUG")

    @pytest.mark.anyio
    async def test_draft_with_non_numeric_id(self, api, make_client, recipient):
        api.add("POST", "/orders", (200, {"code": 200, "result": {"id": "abc", "costs": "n/a"}}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="no order id"):
                await client.create_draft_order(recipient, "https://h/x.png", "MUG")


class TestOrders:
    """Tests for draft creation and confirmation."""

    @pytest.mark.anyio
    async def test_create_draft(self, api, make_client, recipient):
        api.add("POST", "/orders", (200, {
            "code": 200,
            "result": {"id": 101, "status": "draft", "costs": COSTS,
                       "dashboard_url": "https://www.printful.com/dashboard?order_id=101"},
        }))

        async with make_client() as client:
            order = await client.create_draft_order(recipient, "https://h/x.png", ProductType.MUG)

        assert order.id == 101
        assert order.state == OrderState.DRAFT
        assert order.costs.total == "34.98"
        assert order.recipient == recipient

        body = api.json_body(api.requests[0])
        assert body["items"][0]["variant_id"] == 1320
        assert body["items"][0]["files"] == [{"url": "https://h/x.png"}]

    @pytest.mark.anyio
    async def test_create_draft_rejected(self, api, make_client, recipient):
        api.add("POST", "/orders", (400, {"code": 400, "result": "Recipient address is invalid"}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError) as exc_info:
                await client.create_draft_order(recipient, "https://h/x.png", "MUG")

        assert exc_info.value.message == "Recipient address is invalid"
        assert exc_info.value.operation == "create_draft_order"

    @pytest.mark.anyio
    async def test_create_draft_without_id(self, api, make_client, recipient):
        api.add("POST", "/orders", (200, {"code": 200, "result": {"status": "draft"}}))

        async with make_client() as client:
            with pytest.raises(FulfillmentError, match="no order id"):
                await client.create_draft_order(recipient, "https://h/x.png", "MUG")

    @pytest.mark.anyio
    async def test_default_message_when_body_has_none(self, api, make_client, recipient):
        api.add("POST", "/orders", (500, "upstream exploded"))

        async with make_client() as client:
            with pytest.raises(FulfillmentError) as exc_info:
                await client.create_draft_order(recipient, "https://h/x.png", "MUG")

        assert exc_info.value.message == "Failed to create order"
        assert exc_info.value.http_status == 500

    @pytest.mark.anyio
    async def test_confirm(self, api, make_client):
        api.add("POST", "/orders/101/confirm", (200, {"code": 200, "result": {"status": "pending"}}))

        async with make_client() as client:
            order = await client.confirm_order(101)

        assert order.id == 101
        assert order.state == OrderState.CONFIRMED
        assert order.status == "pending"

    @pytest.mark.anyio
    async def test_transport_failure_has_no_status(self, api, make_client):
        api.add("POST", "/orders/101/confirm", httpx.ReadTimeout("timed out"))

        async with make_client() as client:
            with pytest.raises(FulfillmentError) as exc_info:
                await client.confirm_order(101)

        assert exc_info.value.http_status is None
        assert exc_info.value.message.startswith("Failed to confirm order")
