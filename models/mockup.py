"""
Mockup task models.

A mockup task is an asynchronous job on the fulfillment service that
composites the artwork onto a product photo. The client mirrors it by
polling.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class MockupStatus(Enum):
    """
    Status of a mockup generation task.

    Lifecycle:
        PENDING -> (COMPLETED | FAILED)
    """

    PENDING = "pending"
    """Task accepted, still rendering."""

    COMPLETED = "completed"
    """Mockups are ready; result URLs are attached."""

    FAILED = "failed"
    """Upstream gave up on the task."""

    @classmethod
    def from_api(cls, value: Optional[str]) -> "MockupStatus":
        """Map the upstream status string; unknown values count as pending."""
        try:
            return cls(str(value or "").lower())
        except ValueError:
            return cls.PENDING


@dataclass
class MockupTask:
    """Client-side mirror of one mockup generation task."""

    task_key: str
    """Upstream task identifier."""

    status: MockupStatus = MockupStatus.PENDING
    """Last observed status."""

    result_urls: List[str] = field(default_factory=list)
    """Mockup image URLs (only populated when completed)."""

    error: Optional[str] = None
    """Upstream error message for failed tasks."""

    @classmethod
    def from_api(cls, task_key: str, result: Dict[str, Any]) -> "MockupTask":
        """Build from the ``result`` object of a task poll response."""
        status = MockupStatus.from_api(result.get("status"))
        urls = []
        if status == MockupStatus.COMPLETED:
            mockups = result.get("mockups")
            if isinstance(mockups, list):
                urls = [m["mockup_url"] for m in mockups if isinstance(m, dict) and m.get("mockup_url")]
        return cls(
            task_key=result.get("task_key", task_key),
            status=status,
            result_urls=urls,
            error=result.get("error") or None,
        )
