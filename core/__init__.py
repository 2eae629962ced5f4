"""
Core module for ArtPrintWeb.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- image_host: Public image hosting bridge (data URI -> public URL)
- fulfillment_client: Async client for the Printful API

Only the exceptions are re-exported here; the clients import the models
package, which itself depends on these exceptions.
"""

from .exceptions import (
    ArtPrintError,
    ConnectivityError,
    HostingError,
    FulfillmentError,
    EstimationError,
    MockupError,
    MockupTimeoutError,
    OrderError,
    OrderStateError,
    RecipientValidationError,
)

__all__ = [
    "ArtPrintError",
    "ConnectivityError",
    "HostingError",
    "FulfillmentError",
    "EstimationError",
    "MockupError",
    "MockupTimeoutError",
    "OrderError",
    "OrderStateError",
    "RecipientValidationError",
]
