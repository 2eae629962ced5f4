"""
Data models for ArtPrintWeb.

This module contains dataclasses for:
- ProductType / ProductConfig: fixed product -> Printful variant table
- Recipient: validated ship-to address
- ImageAsset: artwork bytes and its public URL
- MockupTask: client-side mirror of an upstream mockup job
- Order: two-phase (draft -> confirmed) order with costs
"""

from .product import ProductType, ProductConfig, PRODUCT_VARIANTS, get_product_config
from .recipient import Recipient, Country, COUNTRIES, country_needs_state
from .image_asset import ImageAsset
from .mockup import MockupTask, MockupStatus
from .order import Order, OrderState, OrderCosts, ShippingRate, cheapest_rate

__all__ = [
    # Product models
    "ProductType",
    "ProductConfig",
    "PRODUCT_VARIANTS",
    "get_product_config",
    # Recipient models
    "Recipient",
    "Country",
    "COUNTRIES",
    "country_needs_state",
    # Artwork
    "ImageAsset",
    # Mockup models
    "MockupTask",
    "MockupStatus",
    # Order models
    "Order",
    "OrderState",
    "OrderCosts",
    "ShippingRate",
    "cheapest_rate",
]
