"""Mockup generation: create a task on the fulfillment service and poll it to completion."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Union

from core.exceptions import FulfillmentError, MockupError, MockupTimeoutError
from core.fulfillment_client import FulfillmentClient
from models.mockup import MockupStatus
from models.product import ProductType
from logging_config import get_logger


DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_ATTEMPTS = 30


class MockupPoller:
    """
    Fixed-cadence poll loop for mockup tasks.

    One poll every ``interval_seconds`` (the wait comes before each poll,
    the task is never ready instantly), at most ``max_attempts`` polls.

    Termination:
        - status "completed": return the mockup URLs
        - status "failed": raise MockupError
        - attempt cap reached: raise MockupTimeoutError
        - a poll that fails at the transport/HTTP level is ignored and the
          loop carries on; only status values end it early

    The poller does not retry task creation; a rejected submission is a
    MockupError straight away.
    """

    def __init__(
        self,
        client: FulfillmentClient,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Initialize the poller.

        Args:
            client: Fulfillment client used for create/poll calls
            interval_seconds: Wait before each poll
            max_attempts: Hard cap on poll requests
            sleep: Awaitable sleep function (tests inject a recorder)
            logger: Logger for tracking operations
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.client = client
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self._sleep = sleep or asyncio.sleep
        self.logger = logger or get_logger(__name__)

    async def generate(self, image_url: str, product: Union[str, ProductType]) -> List[str]:
        """
        Create a mockup task for the artwork and wait for its result.

        Returns:
            Mockup image URLs

        Raises:
            MockupError: Creation rejected or task failed
            MockupTimeoutError: Task still pending after the attempt cap
        """
        try:
            task_key = await self.client.create_mockup_task(image_url, product)
        except FulfillmentError as e:
            raise MockupError(f"Failed to create mockup task: {e.message}")

        return await self.wait_for_completion(task_key)

    async def wait_for_completion(self, task_key: str) -> List[str]:
        """Poll an existing task until it completes, fails, or times out."""
        self.logger.info(
            f"Polling mockup task {task_key} "
            f"(interval={self.interval_seconds}s, max_attempts={self.max_attempts})"
        )

        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.interval_seconds)

            try:
                task = await self.client.poll_mockup_task(task_key)
            except FulfillmentError as e:
                self.logger.debug(f"Poll {attempt}/{self.max_attempts} for {task_key} failed: {e}")
                continue

            if task.status == MockupStatus.COMPLETED:
                self.logger.info(
                    f"Mockup task {task_key} completed after {attempt} polls "
                    f"({len(task.result_urls)} mockups)"
                )
                return task.result_urls

            if task.status == MockupStatus.FAILED:
                raise MockupError(task.error or "Mockup generation failed", task_key)

            self.logger.debug(f"Poll {attempt}/{self.max_attempts}: {task_key} still pending")

        self.logger.warning(f"Mockup task {task_key} timed out after {self.max_attempts} polls")
        raise MockupTimeoutError(task_key, self.max_attempts, self.interval_seconds)
