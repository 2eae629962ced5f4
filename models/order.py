"""
Order data models.

An order goes through two phases on the fulfillment service:

    NONE -> DRAFT -> CONFIRMED

A DRAFT has been created and costed but not charged. CONFIRMED has been
charged and queued for manufacturing. There is no way back from CONFIRMED.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from .recipient import Recipient


class OrderState(Enum):
    """Local view of where an order is in its lifecycle."""

    NONE = "none"
    """No order exists yet."""

    DRAFT = "draft"
    """Created and costed upstream, not charged."""

    CONFIRMED = "confirmed"
    """Charged and queued for manufacturing."""


@dataclass(frozen=True)
class OrderCosts:
    """
    Cost breakdown as reported by the fulfillment service.

    Amounts stay as decimal strings exactly as received ("34.98");
    nothing in this application does arithmetic on them.
    """

    subtotal: str
    shipping: str
    total: str
    currency: str = "USD"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "total": self.total,
            "currency": self.currency,
        }

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "OrderCosts":
        """Build from a Printful ``costs`` object."""
        return cls(
            subtotal=str(data.get("subtotal", "")),
            shipping=str(data.get("shipping", "")),
            total=str(data.get("total", "")),
            currency=data.get("currency") or "USD",
        )


@dataclass(frozen=True)
class ShippingRate:
    """One shipping option returned by a rate estimate."""

    id: str
    name: str
    rate: str
    currency: str
    min_delivery_days: Optional[int] = None
    max_delivery_days: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "rate": self.rate,
            "currency": self.currency,
            "min_delivery_days": self.min_delivery_days,
            "max_delivery_days": self.max_delivery_days,
        }

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ShippingRate":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            rate=str(data.get("rate", "")),
            currency=data.get("currency") or "USD",
            min_delivery_days=data.get("minDeliveryDays"),
            max_delivery_days=data.get("maxDeliveryDays"),
        )


@dataclass
class Order:
    """
    A print order on the fulfillment service.

    Simulated orders (offline mode) carry no upstream id; ``reference`` is
    a locally generated display number instead.
    """

    id: Optional[int] = None
    """Upstream order id (None for simulated orders)."""

    state: OrderState = OrderState.NONE
    """Local lifecycle state."""

    costs: Optional[OrderCosts] = None
    """Costs reported by the fulfillment service."""

    recipient: Optional[Recipient] = None
    """Ship-to address."""

    dashboard_url: Optional[str] = None
    """Link to the order on the Printful dashboard."""

    status: str = ""
    """Raw upstream status ('draft', 'pending', ...)."""

    simulated: bool = False
    """True when produced by the offline simulation."""

    reference: str = field(default_factory=lambda: f"ART-{str(int(time.time() * 1000))[-6:]}")
    """Human-facing order number."""

    @property
    def has_valid_id(self) -> bool:
        return self.id is not None and not self.simulated

    @property
    def display_number(self) -> str:
        return str(self.id) if self.id is not None else self.reference

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "status": self.status,
            "number": self.display_number,
            "costs": self.costs.to_dict() if self.costs else None,
            "recipient": self.recipient.to_dict() if self.recipient else None,
            "dashboard_url": self.dashboard_url,
            "simulated": self.simulated,
        }

    @classmethod
    def from_api(
        cls,
        result: Dict[str, Any],
        state: OrderState,
        recipient: Optional[Recipient] = None,
    ) -> "Order":
        """
        Build from the ``result`` object of an order response.

        Args:
            result: Printful order object
            state: Local state the response represents
            recipient: Recipient sent with the request (kept when the
                response omits it)
        """
        costs = result.get("costs")
        try:
            order_id = int(result["id"])
        except (KeyError, TypeError, ValueError):
            order_id = None
        return cls(
            id=order_id,
            state=state,
            costs=OrderCosts.from_api(costs) if isinstance(costs, dict) and costs else None,
            recipient=recipient,
            dashboard_url=result.get("dashboard_url"),
            status=result.get("status", ""),
        )


def cheapest_rate(rates: List[ShippingRate]) -> Optional[ShippingRate]:
    """First rate as returned upstream (Printful lists the cheapest first)."""
    return rates[0] if rates else None
