"""
Order orchestrator for the ship step.

Sequences the image host and the fulfillment client into the two-phase
order flow the user walks through:

    IDLE -> PREPARING -> READY -> DRAFT_CREATED -> CONFIRMED

with a parallel OFFLINE track. Whenever the fulfillment service cannot be
reached (or the artwork cannot be hosted) every later step degrades to a
local simulation instead of blocking the user.

SINGLE EVENT LOOP:
    Every coroutine here runs on the WorkflowRunner's loop. One orchestrator
    serves one wizard session, so no locking is needed; the only concurrency
    is cooperative (the mockup poll runs as a background task while the
    estimates and user actions proceed).

Failure policy:
    - connection check / hosting: fatal to the connected path -> simulation
    - mockup, shipping estimate, cost estimate: best-effort, logged, swallowed
    - draft / confirm: surfaced to the user, state unchanged, never retried
      automatically

Flow:
    orchestrator = OrderOrchestrator(fulfillment_client, image_host)
    await orchestrator.prepare(artwork, ProductType.MUG, preview_url)
    await orchestrator.place_order(recipient)     # READY -> DRAFT_CREATED
    await orchestrator.confirm_order()            # DRAFT_CREATED -> CONFIRMED
    await orchestrator.dispose()                  # user navigated away
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from core.exceptions import (
    ArtPrintError,
    ConnectivityError,
    EstimationError,
    FulfillmentError,
    HostingError,
    MockupError,
    OrderError,
    OrderStateError,
)
from core.fulfillment_client import FulfillmentClient
from core.image_host import ImageHostClient
from models.image_asset import ImageAsset
from models.order import Order, OrderCosts, OrderState, ShippingRate, cheapest_rate
from models.product import ProductType
from models.recipient import Recipient
from modules.mockup_poller import MockupPoller, DEFAULT_MAX_ATTEMPTS, DEFAULT_POLL_INTERVAL_SECONDS
from modules.simulation import SimulatedFulfillment, DEFAULT_SIMULATED_DELAY_SECONDS
from logging_config import get_logger


# Static fallbacks shown when no estimate is available
FALLBACK_SHIPPING_DISPLAY = "$4.99"
FALLBACK_SHIPPING_NAME = "Standard"
NO_ESTIMATE_DISPLAY = "—"

OFFLINE_WARNING = "Could not connect to Printful. Running in simulation mode."


class WorkflowState(Enum):
    """Where the ship step is in the order flow."""

    IDLE = "idle"
    PREPARING = "preparing"
    READY = "ready"
    DRAFT_CREATED = "draft_created"
    CONFIRMED = "confirmed"


class ConnectionStatus(Enum):
    """Fulfillment connectivity as seen by this session."""

    UNKNOWN = "unknown"
    CONNECTED = "connected"
    OFFLINE = "offline"


@dataclass(frozen=True)
class WorkflowSettings:
    """Timing knobs, passed in explicitly per orchestrator."""

    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_poll_attempts: int = DEFAULT_MAX_ATTEMPTS
    simulated_delay_seconds: float = DEFAULT_SIMULATED_DELAY_SECONDS

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "WorkflowSettings":
        return cls(
            poll_interval_seconds=float(
                config.get("MOCKUP_POLL_INTERVAL_SECONDS", cls.poll_interval_seconds)
            ),
            max_poll_attempts=int(config.get("MOCKUP_MAX_ATTEMPTS", cls.max_poll_attempts)),
            simulated_delay_seconds=float(
                config.get("SIMULATED_DELAY_SECONDS", cls.simulated_delay_seconds)
            ),
        )


Listener = Callable[[Dict[str, Any]], None]


class OrderOrchestrator:
    """
    Drives one wizard session from artwork to confirmed order.

    The orchestrator owns its clients: dispose() closes them and cancels the
    in-flight mockup poll, so a session that is abandoned mid-poll never
    reports a stale mockup.
    """

    def __init__(
        self,
        fulfillment_client: FulfillmentClient,
        image_host: ImageHostClient,
        settings: Optional[WorkflowSettings] = None,
        simulation: Optional[SimulatedFulfillment] = None,
        poller: Optional[MockupPoller] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or WorkflowSettings()
        self.client = fulfillment_client
        self.image_host = image_host
        self.logger = logger or get_logger(__name__)
        self.simulation = simulation or SimulatedFulfillment(
            delay_seconds=self.settings.simulated_delay_seconds,
            logger=self.logger,
        )
        self.poller = poller or MockupPoller(
            fulfillment_client,
            interval_seconds=self.settings.poll_interval_seconds,
            max_attempts=self.settings.max_poll_attempts,
            logger=self.logger,
        )

        self.state = WorkflowState.IDLE
        self.connection = ConnectionStatus.UNKNOWN
        self.offline_reason: Optional[str] = None

        self.artwork: Optional[ImageAsset] = None
        self.product: Optional[ProductType] = None
        self.preview_url: Optional[str] = None

        self.mockup_urls: List[str] = []
        self.mockup_error: Optional[str] = None
        self.is_generating_mockups = False

        self.recipient: Optional[Recipient] = None
        self.shipping_rates: List[ShippingRate] = []
        self.estimated_costs: Optional[OrderCosts] = None

        self.order: Optional[Order] = None
        self.error: Optional[str] = None
        self.warning: Optional[str] = None

        self._mockup_task: Optional[asyncio.Task] = None
        self._action_in_progress: Optional[str] = None
        self._listeners: List[Listener] = []
        self._disposed = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_simulated(self) -> bool:
        return self.connection == ConnectionStatus.OFFLINE

    @property
    def public_url(self) -> Optional[str]:
        return self.artwork.public_url if self.artwork else None

    @property
    def order_state(self) -> OrderState:
        return self.order.state if self.order else OrderState.NONE

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_listener(self, listener: Listener) -> None:
        """Register a callback that receives snapshot() after every change."""
        if not self._disposed:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        if self._disposed or not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self.logger.exception("Order state listener raised")

    def _set_state(self, state: WorkflowState) -> None:
        if state != self.state:
            self.logger.info(f"State {self.state.value} -> {state.value}")
        self.state = state
        self._notify()

    # =========================================================================
    # PREPARATION
    # =========================================================================

    async def prepare(
        self,
        artwork: Union[ImageAsset, bytes, str],
        product: Union[str, ProductType],
        preview_url: Optional[str] = None,
        recipient: Optional[Recipient] = None,
    ) -> Dict[str, Any]:
        """
        Get everything ready for the user to place an order.

        Steps:
            1. Check the fulfillment connection (False -> simulation)
            2. Host the artwork (failure -> simulation)
            3. Start mockup generation in the background
            4-5. Estimate shipping and costs (best-effort, needs an address)
            6. READY as soon as steps 1-2 have resolved

        Args:
            artwork: Source artwork (ImageAsset, bytes or data URI)
            product: Product the artwork goes on
            preview_url: Locally rendered preview, shown until a mockup arrives
            recipient: Address for the estimates, if already known

        Returns:
            snapshot() after preparation

        Raises:
            OrderStateError: If an order already exists for this session
        """
        self._ensure_not_disposed()
        if self.state in (WorkflowState.DRAFT_CREATED, WorkflowState.CONFIRMED):
            raise OrderStateError("An order has already been placed for this session", self.state.value)
        if self.state == WorkflowState.PREPARING:
            raise OrderStateError("Preparation is already in progress", self.state.value)

        product = ProductType.parse(product)
        await self._cancel_mockups()

        self.artwork = artwork if isinstance(artwork, ImageAsset) else ImageAsset(source_data=artwork)
        self.product = product
        self.preview_url = preview_url
        self.recipient = recipient
        self.mockup_urls = []
        self.mockup_error = None
        self.shipping_rates = []
        self.estimated_costs = None
        self.error = None
        self.warning = None
        self._set_state(WorkflowState.PREPARING)

        # Step 1: connectivity
        connected = await self.client.check_connection()
        if not connected:
            self._go_offline(ConnectivityError())
            return self.snapshot()

        # Step 2: public URL for the artwork
        try:
            public_url = await self._ensure_hosted()
        except HostingError as e:
            self.logger.error(f"Artwork hosting failed: {e.message}")
            self.error = f"Could not connect to manufacturing: {e.message}"
            self._go_offline(e)
            return self.snapshot()

        self.connection = ConnectionStatus.CONNECTED
        self.offline_reason = None

        # Step 3: mockups run alongside everything that follows
        self._mockup_task = asyncio.create_task(self._run_mockups(public_url, self.product))

        # Step 6: fatal steps resolved; estimates may still be in flight
        self._set_state(WorkflowState.READY)

        # Steps 4-5
        if recipient is not None:
            await self.refresh_estimates(recipient)

        return self.snapshot()

    async def _ensure_hosted(self) -> str:
        """Host the artwork on first need; later calls reuse the URL."""
        if self.artwork.public_url:
            return self.artwork.public_url

        self.logger.info("Uploading artwork to public host...")
        self.artwork.public_url = await self.image_host.host_image(self.artwork.source_data)
        self.logger.info(f"Public image URL: {self.artwork.public_url}")
        return self.artwork.public_url

    def _go_offline(self, reason: ArtPrintError) -> None:
        self.connection = ConnectionStatus.OFFLINE
        self.offline_reason = type(reason).__name__
        self.warning = OFFLINE_WARNING
        self.estimated_costs = self.simulation.estimate_costs(self.product)
        self.logger.warning(f"Switching to simulation mode: {reason.message}")
        self._set_state(WorkflowState.READY)

    # =========================================================================
    # ESTIMATES (best-effort)
    # =========================================================================

    async def refresh_estimates(self, recipient: Recipient) -> Dict[str, Any]:
        """
        Re-run the shipping and cost estimates for an address.

        Both run concurrently and both are best-effort: a failure keeps the
        previous value (or the static fallback) and is only logged. Nothing
        happens offline or when the address is incomplete.
        """
        self._ensure_not_disposed()
        self.recipient = recipient

        if self.is_simulated or not self.public_url:
            return self.snapshot()

        missing = recipient.missing_fields(require_name=False)
        if missing:
            self.logger.debug(f"Skipping estimates, address incomplete: {missing}")
            return self.snapshot()

        results = await asyncio.gather(
            self._estimate_shipping(recipient),
            self._estimate_costs(recipient),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, EstimationError):
                self.logger.warning(f"{result.message}; showing fallback estimate")
            elif isinstance(result, BaseException):
                raise result

        self._notify()
        return self.snapshot()

    async def _estimate_shipping(self, recipient: Recipient) -> None:
        try:
            self.shipping_rates = await self.client.estimate_shipping_rates(recipient, self.product)
        except FulfillmentError as e:
            raise EstimationError(f"Shipping rate estimation failed: {e.message}")

    async def _estimate_costs(self, recipient: Recipient) -> None:
        try:
            self.estimated_costs = await self.client.estimate_order_costs(
                recipient, self.public_url, self.product
            )
        except FulfillmentError as e:
            raise EstimationError(f"Cost estimation failed: {e.message}")

    # =========================================================================
    # MOCKUPS (best-effort, background)
    # =========================================================================

    async def _run_mockups(self, public_url: str, product: ProductType) -> None:
        self.is_generating_mockups = True
        self._notify()
        try:
            urls = await self.poller.generate(public_url, product)
            if self._disposed:
                return
            self.mockup_urls = urls
        except MockupError as e:
            self.logger.warning(f"Mockup generation failed, using local preview: {e.message}")
            self.mockup_error = e.message
        finally:
            self.is_generating_mockups = False
            self._notify()

    async def wait_for_mockups(self) -> List[str]:
        """Wait for the background mockup task (if any) and return the URLs."""
        task = self._mockup_task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return list(self.mockup_urls)

    async def _cancel_mockups(self) -> None:
        task = self._mockup_task
        self._mockup_task = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait({task})
        self.logger.info("Mockup polling cancelled")

    # =========================================================================
    # ORDER LIFECYCLE
    # =========================================================================

    async def place_order(self, recipient: Recipient) -> Order:
        """
        Create the draft order (READY -> DRAFT_CREATED).

        Uses the same hosted URL as the estimates and mockups. On failure
        the state stays READY and the error is kept for display, so the
        user can fix the address and try again.

        Raises:
            RecipientValidationError: Required shipping fields missing
            OrderStateError: Not READY, or another action is running
            OrderError: The fulfillment service rejected the draft
        """
        self._ensure_not_disposed()
        if self.state != WorkflowState.READY:
            if self.state in (WorkflowState.DRAFT_CREATED, WorkflowState.CONFIRMED):
                raise OrderStateError("An order has already been placed", self.state.value)
            raise OrderStateError("Order preparation has not finished", self.state.value)

        recipient.validate()

        with self._exclusive_action("place_order"):
            self.recipient = recipient
            self.error = None

            if self.is_simulated:
                order = await self.simulation.create_draft(recipient, self.product)
            else:
                try:
                    order = await self.client.create_draft_order(
                        recipient, self.public_url, self.product
                    )
                except FulfillmentError as e:
                    self.error = f"Failed to create order: {e.message}"
                    self.logger.error(self.error)
                    self._notify()
                    raise OrderError(self.error, http_status=e.http_status)

            self.order = order
            self._set_state(WorkflowState.DRAFT_CREATED)
            return order

    async def confirm_order(self) -> Order:
        """
        Confirm the draft (DRAFT_CREATED -> CONFIRMED).

        Charges the account and starts manufacturing; cannot be undone.
        Confirm is never sent upstream unless a draft with a real id exists
        and the local state is not already CONFIRMED.

        Raises:
            OrderStateError: No draft, already confirmed, or busy
            OrderError: The fulfillment service rejected the confirmation
        """
        self._ensure_not_disposed()
        order = self.order

        if self.state == WorkflowState.CONFIRMED or self.order_state == OrderState.CONFIRMED:
            raise OrderStateError("Order is already confirmed", self.state.value)
        if order is None or order.state != OrderState.DRAFT:
            raise OrderStateError("There is no draft order to confirm", self.state.value)
        if not order.simulated and not order.has_valid_id:
            raise OrderStateError("Draft order has no id", self.state.value)

        # Once sent, a confirmation is applied locally even if the caller
        # stops waiting for it.
        return await asyncio.shield(self._confirm(order))

    async def _confirm(self, order: Order) -> Order:
        with self._exclusive_action("confirm_order"):
            self.error = None

            if order.simulated:
                confirmed = await self.simulation.confirm(order)
            else:
                try:
                    confirmed = await self.client.confirm_order(order.id)
                except FulfillmentError as e:
                    self.error = f"Failed to confirm order: {e.message}"
                    self.logger.error(self.error)
                    self._notify()
                    raise OrderError(self.error, http_status=e.http_status)

                # The confirm response may omit what we already know
                if confirmed.recipient is None:
                    confirmed.recipient = order.recipient
                if confirmed.costs is None:
                    confirmed.costs = order.costs
                if confirmed.dashboard_url is None:
                    confirmed.dashboard_url = order.dashboard_url

            self.order = confirmed
            self._set_state(WorkflowState.CONFIRMED)
            return confirmed

    def _exclusive_action(self, name: str) -> "_ActionGuard":
        if self._action_in_progress:
            raise OrderStateError(
                f"Cannot {name.replace('_', ' ')} while {self._action_in_progress.replace('_', ' ')} is running",
                self.state.value,
            )
        return _ActionGuard(self, name)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def dispose(self) -> None:
        """
        Tear down the session: drop listeners, cancel the mockup poll,
        close the HTTP clients. Safe to call more than once.
        """
        if self._disposed:
            return
        self._disposed = True
        self._listeners.clear()

        await self._cancel_mockups()
        await self.client.aclose()
        await self.image_host.aclose()
        self.logger.info("Order session disposed")

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise OrderStateError("This order session has been closed", self.state.value)

    # =========================================================================
    # VIEW
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of everything the ship step renders."""
        rate = cheapest_rate(self.shipping_rates)
        costs = self.estimated_costs

        if costs:
            display_shipping = f"{costs.currency} {costs.shipping}"
        elif rate:
            display_shipping = f"${rate.rate}"
        else:
            display_shipping = FALLBACK_SHIPPING_DISPLAY

        return {
            "state": self.state.value,
            "connection": self.connection.value,
            "simulated": self.is_simulated,
            "offline_reason": self.offline_reason,
            "product": self.product.name if self.product else None,
            "public_url": self.public_url,
            "preview_url": self.mockup_urls[0] if self.mockup_urls else self.preview_url,
            "mockup_urls": list(self.mockup_urls),
            "mockup_error": self.mockup_error,
            "is_generating_mockups": self.is_generating_mockups,
            "shipping_rates": [r.to_dict() for r in self.shipping_rates],
            "estimated_costs": costs.to_dict() if costs else None,
            "display": {
                "shipping": display_shipping,
                "shipping_name": rate.name if rate else FALLBACK_SHIPPING_NAME,
                "subtotal": f"{costs.currency} {costs.subtotal}" if costs else NO_ESTIMATE_DISPLAY,
                "total": f"{costs.currency} {costs.total}" if costs else NO_ESTIMATE_DISPLAY,
            },
            "order": self.order.to_dict() if self.order else None,
            "order_state": self.order_state.value,
            "action_in_progress": self._action_in_progress,
            "error": self.error,
            "warning": self.warning,
        }


class _ActionGuard:
    """Marks a user action as running so a double submit is rejected."""

    def __init__(self, orchestrator: OrderOrchestrator, name: str) -> None:
        self._orchestrator = orchestrator
        self._name = name

    def __enter__(self) -> None:
        self._orchestrator._action_in_progress = self._name
        self._orchestrator._notify()

    def __exit__(self, exc_type, exc, tb) -> None:
        self._orchestrator._action_in_progress = None
