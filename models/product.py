"""
Product catalog models.

Each product the wizard can print maps to a fixed Printful variant, catalog
product and print placement. The table is not user-editable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Union


class ProductType(Enum):
    """Products offered on the ship step (values are display names)."""

    TSHIRT = "T-Shirt"
    MUG = "Coffee Mug"
    CANVAS = "Canvas Print"
    TOTE = "Tote Bag"

    @classmethod
    def parse(cls, value: Union[str, "ProductType"]) -> "ProductType":
        """
        Resolve a product from its member name or display value.

        Accepts "TSHIRT", "tshirt" or "T-Shirt".

        Raises:
            ValueError: If the value names no known product
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.upper() == member.name or text == member.value:
                return member
        raise ValueError(f"Unknown product type: {value!r}")


@dataclass(frozen=True)
class ProductConfig:
    """Printful identifiers for one product."""

    variant_id: int
    """Printful catalog variant id (size/color specific)."""

    product_id: int
    """Printful catalog product id (used by the mockup generator)."""

    placement: str
    """Print placement slot ('front', 'default', ...)."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant_id": self.variant_id,
            "product_id": self.product_id,
            "placement": self.placement,
        }


PRODUCT_VARIANTS: Dict[ProductType, ProductConfig] = {
    ProductType.TSHIRT: ProductConfig(variant_id=4012, product_id=71, placement="front"),
    ProductType.MUG: ProductConfig(variant_id=1320, product_id=19, placement="default"),
    ProductType.CANVAS: ProductConfig(variant_id=5, product_id=3, placement="default"),
    ProductType.TOTE: ProductConfig(variant_id=10457, product_id=367, placement="front"),
}


def get_product_config(product: Union[str, ProductType]) -> ProductConfig:
    """Look up the fixed Printful identifiers for a product."""
    return PRODUCT_VARIANTS[ProductType.parse(product)]
