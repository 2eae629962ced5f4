"""
Shipping recipient model.

The ship form collects the bare minimum Printful needs. State/region is only
required for countries that have subdivisions; validation runs before any
request goes upstream.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Optional

from core.exceptions import RecipientValidationError


@dataclass(frozen=True)
class Country:
    """A destination country offered on the ship form."""

    code: str
    name: str
    has_states: bool


# Printful ships to most countries; these cover the vast majority of orders
COUNTRIES: List[Country] = [
    Country("US", "United States", True),
    Country("CA", "Canada", True),
    Country("GB", "United Kingdom", False),
    Country("AU", "Australia", True),
    Country("DE", "Germany", False),
    Country("FR", "France", False),
    Country("ES", "Spain", False),
    Country("IT", "Italy", False),
    Country("NL", "Netherlands", False),
    Country("JP", "Japan", True),
    Country("SE", "Sweden", False),
    Country("NO", "Norway", False),
    Country("DK", "Denmark", False),
    Country("FI", "Finland", False),
    Country("IE", "Ireland", False),
    Country("NZ", "New Zealand", False),
    Country("AT", "Austria", False),
    Country("BE", "Belgium", False),
    Country("CH", "Switzerland", False),
    Country("PT", "Portugal", False),
    Country("PL", "Poland", False),
    Country("BR", "Brazil", True),
    Country("MX", "Mexico", True),
]

_COUNTRIES_BY_CODE: Dict[str, Country] = {c.code: c for c in COUNTRIES}

DEFAULT_COUNTRY = "US"


def country_needs_state(country_code: str) -> bool:
    """True if orders to this country must carry a state/region code."""
    country = _COUNTRIES_BY_CODE.get((country_code or "").upper())
    return country.has_states if country else False


@dataclass(frozen=True)
class Recipient:
    """
    Where the printed product ships.

    Field names follow the Printful recipient object.
    """

    name: str
    """Full name of the recipient."""

    address1: str
    """Street address line."""

    city: str
    """City or town."""

    zip: str
    """Postal code."""

    country_code: str = DEFAULT_COUNTRY
    """ISO 3166-1 alpha-2 country code."""

    state_code: Optional[str] = None
    """State/region code; required only when the country has subdivisions."""

    def missing_fields(self, require_name: bool = True) -> List[str]:
        """Return the names of required fields that are empty."""
        required = ["address1", "city", "zip", "country_code"]
        if require_name:
            required.insert(0, "name")

        missing = [f for f in required if not (getattr(self, f) or "").strip()]
        if country_needs_state(self.country_code) and not (self.state_code or "").strip():
            missing.append("state_code")
        return missing

    def validate(self, require_name: bool = True) -> "Recipient":
        """
        Check required fields.

        Args:
            require_name: Shipping-rate estimates only need the address

        Returns:
            self, for chaining

        Raises:
            RecipientValidationError: If any required field is empty
        """
        missing = self.missing_fields(require_name=require_name)
        if missing:
            raise RecipientValidationError(missing)
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Full Printful recipient (orders, cost estimates)."""
        payload = {
            "name": self.name,
            "address1": self.address1,
            "city": self.city,
            "country_code": self.country_code,
            "zip": self.zip,
        }
        if self.state_code:
            payload["state_code"] = self.state_code
        return payload

    def to_address_payload(self) -> Dict[str, Any]:
        """Address-only recipient (shipping-rate estimates)."""
        payload = self.to_payload()
        payload.pop("name")
        return payload

    @property
    def display_destination(self) -> str:
        """'City, ST, US' style summary for the confirmation screen."""
        parts = [self.city]
        if self.state_code:
            parts.append(self.state_code)
        parts.append(self.country_code)
        return ", ".join(p for p in parts if p)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for session storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recipient":
        """
        Create from a form or JSON dictionary.

        Accepts both the Printful field names and the ship form names
        (``address``, ``state``, ``country``).
        """
        state = data.get("state_code", data.get("state")) or None
        return cls(
            name=(data.get("name") or "").strip(),
            address1=(data.get("address1", data.get("address")) or "").strip(),
            city=(data.get("city") or "").strip(),
            zip=(data.get("zip") or "").strip(),
            country_code=(data.get("country_code", data.get("country")) or DEFAULT_COUNTRY).strip().upper(),
            state_code=state.strip().upper() if state else None,
        )
