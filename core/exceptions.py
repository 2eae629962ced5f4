"""
Custom exceptions for ArtPrintWeb.

Exception Hierarchy:
    ArtPrintError (base)
    ├── ConnectivityError     - Fulfillment service unreachable (recovered: simulation)
    ├── HostingError          - No public URL for the artwork (recovered: simulation)
    ├── FulfillmentError      - Upstream returned a non-success response
    ├── EstimationError       - Shipping/cost estimate failed (best-effort)
    ├── MockupError           - Mockup task failed (best-effort)
    │   └── MockupTimeoutError    - Poll attempts exhausted
    └── OrderError            - Draft creation or confirmation failed (user-visible)
        ├── OrderStateError         - Operation not allowed in current order state
        └── RecipientValidationError - Recipient is missing required fields

Usage:
    Best-effort errors (EstimationError, MockupError) are logged and swallowed
    by the orchestrator. OrderError is surfaced to the user with the upstream
    message and the flow stays where it was so the action can be retried.
"""

from typing import Optional, Dict, Any, List


class ArtPrintError(Exception):
    """
    Base exception for all ArtPrintWeb errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONNECTION-LEVEL ERRORS - the flow switches to simulation mode
# =============================================================================

class ConnectivityError(ArtPrintError):
    """
    The fulfillment service cannot be reached.

    Never fatal to the user: the whole flow switches to simulation mode and
    the UI only shows a status indicator.
    """

    def __init__(self, message: str = "Could not connect to Printful"):
        details = {
            "service": "printful",
            "resolution": "Check PRINTFUL_API_KEY and network access; running in simulation mode",
        }
        super().__init__(message, details)


class HostingError(ArtPrintError):
    """
    The artwork could not be turned into a public URL.

    Fatal to the connected path: none of the fulfillment calls can run
    without a URL the service can fetch. Recovered by falling back to
    simulation mode.
    """

    def __init__(self, message: str, http_status: Optional[int] = None):
        details: Dict[str, Any] = {}
        if http_status is not None:
            details["http_status"] = http_status
        super().__init__(message, details)
        self.http_status = http_status


class FulfillmentError(ArtPrintError):
    """
    The fulfillment API answered with a non-success response.

    Raised by every FulfillmentClient operation except check_connection().
    ``http_status`` is None when the request never got a response
    (connection refused, timeout, ...).
    """

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        details: Dict[str, Any] = {}
        if http_status is not None:
            details["http_status"] = http_status
        if operation:
            details["operation"] = operation
        super().__init__(message, details)
        self.http_status = http_status
        self.operation = operation


# =============================================================================
# BEST-EFFORT ERRORS - logged, never block the pipeline
# =============================================================================

class EstimationError(ArtPrintError):
    """Shipping-rate or cost estimation failed; a static value is shown instead."""


class MockupError(ArtPrintError):
    """
    Mockup generation failed.

    The preview falls back to the locally rendered product image.
    """

    def __init__(self, message: str, task_key: Optional[str] = None):
        details = {"task_key": task_key} if task_key else {}
        super().__init__(message, details)
        self.task_key = task_key


class MockupTimeoutError(MockupError):
    """The mockup task did not finish within the poll attempt cap."""

    def __init__(self, task_key: Optional[str], attempts: int, interval_seconds: float):
        super().__init__("Mockup generation timed out", task_key)
        self.details.update({
            "attempts": attempts,
            "interval_seconds": interval_seconds,
        })
        self.attempts = attempts
        self.interval_seconds = interval_seconds


# =============================================================================
# USER-TRIGGERED ERRORS - shown inline, action can be retried
# =============================================================================

class OrderError(ArtPrintError):
    """
    Draft order creation or confirmation failed.

    Surfaced directly to the user. The orchestrator stays in its current
    state and never retries on its own.
    """

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if http_status is not None:
            error_details["http_status"] = http_status
        super().__init__(message, error_details)
        self.http_status = http_status


class OrderStateError(OrderError):
    """The requested order transition is not allowed from the current state."""

    def __init__(self, message: str, state: str):
        super().__init__(message, details={"state": state})
        self.state = state


class RecipientValidationError(OrderError):
    """The recipient is missing fields required before any network call."""

    def __init__(self, missing_fields: List[str]):
        message = "Missing required shipping fields: " + ", ".join(missing_fields)
        super().__init__(message, details={"missing_fields": list(missing_fields)})
        self.missing_fields = list(missing_fields)
