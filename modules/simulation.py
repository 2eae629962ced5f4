"""Offline stand-in for the fulfillment service so the UI can complete the flow."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional, Union

from models.order import Order, OrderCosts, OrderState
from models.product import ProductType
from models.recipient import Recipient
from logging_config import get_logger


DEFAULT_SIMULATED_DELAY_SECONDS = 2.0

PLACEHOLDER_CURRENCY = "USD"
PLACEHOLDER_SHIPPING = Decimal("4.99")

# Placeholder retail prices shown while the fulfillment service is unreachable
PLACEHOLDER_PRICES: Dict[ProductType, Decimal] = {
    ProductType.TSHIRT: Decimal("24.99"),
    ProductType.MUG: Decimal("14.99"),
    ProductType.CANVAS: Decimal("39.99"),
    ProductType.TOTE: Decimal("19.99"),
}


def placeholder_costs(product: Union[str, ProductType]) -> OrderCosts:
    """Fixed cost breakdown for a product in simulation mode."""
    subtotal = PLACEHOLDER_PRICES[ProductType.parse(product)]
    return OrderCosts(
        subtotal=str(subtotal),
        shipping=str(PLACEHOLDER_SHIPPING),
        total=str(subtotal + PLACEHOLDER_SHIPPING),
        currency=PLACEHOLDER_CURRENCY,
    )


class SimulatedFulfillment:
    """
    Creates fake orders locally when the fulfillment service is offline.

    Nothing is sent anywhere: orders have no upstream id, a short delay
    stands in for manufacturing, and costs come from the placeholder table.
    """

    def __init__(
        self,
        delay_seconds: float = DEFAULT_SIMULATED_DELAY_SECONDS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.delay_seconds = delay_seconds
        self._sleep = sleep or asyncio.sleep
        self.logger = logger or get_logger(__name__)

    def estimate_costs(self, product: Union[str, ProductType]) -> OrderCosts:
        return placeholder_costs(product)

    async def create_draft(self, recipient: Recipient, product: Union[str, ProductType]) -> Order:
        """Simulate draft creation after the configured delay."""
        self.logger.info("Creating simulated draft order")
        await self._sleep(self.delay_seconds)

        order = Order(
            state=OrderState.DRAFT,
            costs=placeholder_costs(product),
            recipient=recipient,
            status="simulated",
            simulated=True,
        )
        self.logger.info(f"Simulated draft order {order.reference} created")
        return order

    async def confirm(self, order: Order) -> Order:
        """Simulate confirmation; returns a new CONFIRMED copy of the order."""
        self.logger.info(f"Confirming simulated order {order.reference}")
        await self._sleep(self.delay_seconds)

        return Order(
            state=OrderState.CONFIRMED,
            costs=order.costs,
            recipient=order.recipient,
            status="simulated",
            simulated=True,
            reference=order.reference,
        )
