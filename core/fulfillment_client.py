"""
Printful fulfillment API client.

Typed async facade over the handful of Printful endpoints the ship step
needs. Every method is one request/response; retry loops (mockup polling)
and fallback decisions belong to the orchestrator, not here.

CREDENTIALS:
    The API key lives in FulfillmentConfig, built server-side from the Flask
    config. There is no module-level "active key": each client gets its
    config explicitly and its lifetime is scoped to the orchestrator that
    owns it.

Endpoints:
    GET  /products                               connectivity probe
    POST /mockup-generator/create-task/{id}      start a mockup task
    GET  /mockup-generator/task?task_key=        poll a mockup task
    POST /shipping/rates                         shipping estimate
    POST /orders/estimate-costs                  cost estimate
    POST /orders                                 create draft order
    POST /orders/{id}/confirm                    confirm (charges!)

Usage:
    config = FulfillmentConfig(base_url="https://api.printful.com", api_key=key)
    async with FulfillmentClient(config) as client:
        if await client.check_connection():
            task_key = await client.create_mockup_task(url, ProductType.MUG)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Any, List, Mapping, Optional, Union

import httpx

from models.mockup import MockupTask
from models.order import Order, OrderCosts, OrderState, ShippingRate
from models.product import ProductType, get_product_config
from models.recipient import Recipient
from .exceptions import FulfillmentError


@dataclass(frozen=True)
class FulfillmentConfig:
    """Connection settings for one FulfillmentClient."""

    base_url: str = "https://api.printful.com"
    """Printful API root, or the /api/printful proxy when running behind one."""

    api_key: str = ""
    """Bearer token; empty when an authenticating proxy adds it instead."""

    timeout_seconds: float = 30.0
    """Per-request timeout."""

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "FulfillmentConfig":
        """Build from a Flask config (or any mapping with the same keys)."""
        return cls(
            base_url=config.get("PRINTFUL_API_BASE", cls.base_url),
            api_key=config.get("PRINTFUL_API_KEY", "") or "",
            timeout_seconds=float(config.get("HTTP_TIMEOUT_SECONDS", cls.timeout_seconds)),
        )


def _error_message(response: httpx.Response, default: str) -> str:
    """
    Pull a human message out of a Printful error response.

    Printful errors look like {"code": 400, "result": "Invalid recipient",
    "error": {"reason": "BadRequest", "message": "Invalid recipient"}}.
    """
    try:
        body = response.json()
    except ValueError:
        return default

    if isinstance(body, dict):
        result = body.get("result")
        if isinstance(result, str) and result:
            return result
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str) and error:
            return error
    return default


class FulfillmentClient:
    """
    Async client for the Printful API.

    All methods except check_connection() raise FulfillmentError on a
    non-success response or transport failure. check_connection() is a
    health probe and only ever returns a bool.
    """

    def __init__(
        self,
        config: FulfillmentConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Connection settings (base URL, key, timeout)
            transport: Optional custom transport (tests use httpx.MockTransport)
            logger: Logger instance (creates default if not provided)
        """
        self.config = config
        self._logger = logger or logging.getLogger("art_print_web.core.fulfillment_client")

        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"

        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=httpx.Timeout(config.timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "FulfillmentClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # =========================================================================
    # REQUEST PLUMBING
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        default_error: str,
        json_body: Any = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Send one request and return the decoded JSON envelope.

        Raises:
            FulfillmentError: On transport failure, non-2xx status or a
                body that is not a JSON object
        """
        self._logger.debug(f"{operation}: {method} {path}")

        try:
            response = await self._client.request(method, path, json=json_body, params=params)
        except httpx.HTTPError as e:
            self._logger.error(f"{operation} failed: {e}")
            raise FulfillmentError(f"{default_error}: {e}", operation=operation)

        if not response.is_success:
            message = _error_message(response, default_error)
            self._logger.warning(f"{operation} rejected (HTTP {response.status_code}): {message}")
            raise FulfillmentError(message, http_status=response.status_code, operation=operation)

        try:
            body = response.json()
        except ValueError:
            raise FulfillmentError(
                f"{default_error}: invalid JSON response",
                http_status=response.status_code,
                operation=operation,
            )

        if not isinstance(body, dict):
            raise FulfillmentError(
                f"{default_error}: unexpected response",
                http_status=response.status_code,
                operation=operation,
            )
        return body

    @staticmethod
    def _result(body: Dict[str, Any], expected: type, operation: str, default_error: str) -> Any:
        """
        Pull ``result`` out of a success envelope, checking its shape.

        A missing result counts as an empty one of the expected type.

        Raises:
            FulfillmentError: If ``result`` is present but of the wrong type
        """
        result = body.get("result")
        if result is None:
            return expected()
        if not isinstance(result, expected):
            raise FulfillmentError(f"{default_error}: unexpected response", operation=operation)
        return result

    @staticmethod
    def _order_items(product: ProductType, image_url: Optional[str] = None) -> List[Dict[str, Any]]:
        config = get_product_config(product)
        item: Dict[str, Any] = {"variant_id": config.variant_id, "quantity": 1}
        if image_url is not None:
            item["files"] = [{"url": image_url}]
        return [item]

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def check_connection(self) -> bool:
        """
        Probe a lightweight read-only endpoint.

        Returns:
            True if the API answered with a success status, False on any
            network or auth failure (never raises)
        """
        try:
            response = await self._client.get("/products")
        except httpx.HTTPError as e:
            self._logger.warning(f"Printful connection check failed: {e}")
            return False

        if not response.is_success:
            self._logger.warning(f"Printful connection check failed: HTTP {response.status_code}")
            return False
        return True

    async def create_mockup_task(self, image_url: str, product: Union[str, ProductType]) -> str:
        """
        Submit a mockup generation task.

        Args:
            image_url: Public URL of the artwork
            product: Product to render the artwork on

        Returns:
            Task key for polling
        """
        config = get_product_config(product)
        body = await self._request(
            "POST",
            f"/mockup-generator/create-task/{config.product_id}",
            operation="create_mockup_task",
            default_error="Failed to create mockup task",
            json_body={
                "variant_ids": [config.variant_id],
                "format": "png",
                "files": [{"placement": config.placement, "image_url": image_url}],
            },
        )

        result = self._result(body, dict, "create_mockup_task", "Failed to create mockup task")
        task_key = result.get("task_key")
        if not task_key:
            raise FulfillmentError(
                "Failed to create mockup task: no task key returned",
                operation="create_mockup_task",
            )

        self._logger.info(f"Mockup task created: {task_key}")
        return task_key

    async def poll_mockup_task(self, task_key: str) -> MockupTask:
        """Poll a mockup task once and return its current state."""
        body = await self._request(
            "GET",
            "/mockup-generator/task",
            operation="poll_mockup_task",
            default_error="Failed to poll mockup task",
            params={"task_key": task_key},
        )
        result = self._result(body, dict, "poll_mockup_task", "Failed to poll mockup task")
        return MockupTask.from_api(task_key, result)

    async def estimate_shipping_rates(
        self,
        recipient: Recipient,
        product: Union[str, ProductType],
    ) -> List[ShippingRate]:
        """Estimate shipping options for one unit of a product (no side effects)."""
        body = await self._request(
            "POST",
            "/shipping/rates",
            operation="estimate_shipping_rates",
            default_error="Failed to estimate shipping",
            json_body={
                "recipient": recipient.to_address_payload(),
                "items": self._order_items(ProductType.parse(product)),
            },
        )
        rates = self._result(body, list, "estimate_shipping_rates", "Failed to estimate shipping")
        if not all(isinstance(rate, dict) for rate in rates):
            raise FulfillmentError(
                "Failed to estimate shipping: unexpected response",
                operation="estimate_shipping_rates",
            )
        return [ShippingRate.from_api(rate) for rate in rates]

    async def estimate_order_costs(
        self,
        recipient: Recipient,
        image_url: str,
        product: Union[str, ProductType],
    ) -> OrderCosts:
        """Estimate subtotal/shipping/total without creating an order."""
        body = await self._request(
            "POST",
            "/orders/estimate-costs",
            operation="estimate_order_costs",
            default_error="Failed to estimate costs",
            json_body={
                "recipient": recipient.to_payload(),
                "items": self._order_items(ProductType.parse(product), image_url),
            },
        )

        result = self._result(body, dict, "estimate_order_costs", "Failed to estimate costs")
        costs = result.get("costs")
        if not costs or not isinstance(costs, dict):
            raise FulfillmentError(
                "Failed to estimate costs: no costs returned",
                operation="estimate_order_costs",
            )
        return OrderCosts.from_api(costs)

    async def create_draft_order(
        self,
        recipient: Recipient,
        image_url: str,
        product: Union[str, ProductType],
    ) -> Order:
        """
        Create a draft order.

        Allocates an order record upstream but does not charge. The image
        URL is passed inline; no separate file library upload is needed.
        """
        body = await self._request(
            "POST",
            "/orders",
            operation="create_draft_order",
            default_error="Failed to create order",
            json_body={
                "recipient": recipient.to_payload(),
                "items": self._order_items(ProductType.parse(product), image_url),
            },
        )

        result = self._result(body, dict, "create_draft_order", "Failed to create order")
        order = Order.from_api(result, OrderState.DRAFT, recipient)
        if order.id is None:
            raise FulfillmentError(
                "Failed to create order: no order id returned",
                operation="create_draft_order",
            )

        self._logger.info(f"Draft order created: #{order.id}")
        return order

    async def confirm_order(self, order_id: int) -> Order:
        """
        Confirm a draft order.

        IRREVERSIBLE: charges the account's payment method and starts
        manufacturing.
        """
        body = await self._request(
            "POST",
            f"/orders/{order_id}/confirm",
            operation="confirm_order",
            default_error="Failed to confirm order",
        )

        result = self._result(body, dict, "confirm_order", "Failed to confirm order")
        order = Order.from_api(result, OrderState.CONFIRMED)
        if order.id is None:
            order.id = order_id

        self._logger.info(f"Order confirmed: #{order.id}")
        return order
