"""
Background event loop for the order workflow.

Flask serves requests on plain threads. Everything the order workflow does
(hosting, mockup polling, estimates, draft/confirm) is a coroutine, so it
all runs on ONE asyncio loop owned by a daemon thread named "Workflow".

Request threads hand coroutines over with submit()/run() and get a
concurrent.futures.Future back. Because there is a single loop, the
orchestrators never see two of their own coroutines interleave at anything
but an await point.

Usage:
    # At app startup
    runner = WorkflowRunner()
    runner.start()

    # In routes (request thread)
    snapshot = runner.run(orchestrator.place_order(recipient), timeout=90)

    # At app shutdown
    runner.stop()
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

from logging_config import get_logger, set_thread_name


# Module logger
logger = get_logger(__name__)

T = TypeVar("T")


class WorkflowRunner:
    """
    Owns the workflow event loop and its thread.

    Attributes:
        is_running: Whether the loop thread is active
    """

    def __init__(self, thread_name: str = "Workflow"):
        self._thread_name = thread_name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """Whether the loop thread is active and accepting work."""
        loop = self._loop
        return loop is not None and loop.is_running()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def start(self) -> None:
        """
        Start the loop thread and wait until the loop is running.

        Safe to call multiple times - only starts if not already running.
        """
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.warning("WorkflowRunner already running")
                return

            logger.info("Starting workflow event loop thread...")
            self._started.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                name=self._thread_name,
                daemon=True,
            )
            self._thread.start()

        if not self._started.wait(timeout=5.0):
            raise RuntimeError("Workflow event loop failed to start")

        logger.info("Workflow event loop thread started")

    def _run_loop(self) -> None:
        """Thread main: run the loop until stop() is called."""
        set_thread_name(self._thread_name)

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        loop.call_soon(self._started.set)

        try:
            loop.run_forever()
        finally:
            # Cancel whatever is still in flight so it can clean up
            pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
                logger.info(f"Cancelled {len(pending)} pending workflow task(s)")
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            self._loop = None
            logger.info("Workflow event loop closed")

    def submit(self, coro: Awaitable[T]) -> "concurrent.futures.Future[T]":
        """
        Schedule a coroutine on the workflow loop.

        Returns immediately with a Future; use this for fire-and-forget work.

        Raises:
            RuntimeError: If the runner is not running
        """
        loop = self._loop
        if loop is None or not loop.is_running():
            # Avoid "coroutine was never awaited" warnings
            close = getattr(coro, "close", None)
            if close is not None:
                close()
            raise RuntimeError("WorkflowRunner is not running")
        return asyncio.run_coroutine_threadsafe(coro, loop)

    def run(self, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        """
        Run a coroutine on the workflow loop and block for its result.

        Exceptions raised by the coroutine propagate to the caller.

        Raises:
            TimeoutError: The coroutine did not finish in time (it is cancelled)
        """
        future = self.submit(coro)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            if future.done():
                raise
            future.cancel()
            raise TimeoutError(f"Workflow operation did not finish within {timeout}s")

    def call(self, fn: Callable[..., T], *args: Any, timeout: Optional[float] = None) -> T:
        """Run a plain callable on the loop thread and return its result."""

        async def _invoke() -> T:
            return fn(*args)

        return self.run(_invoke(), timeout=timeout)

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the loop and join the thread.

        Pending tasks are cancelled. Safe to call multiple times.
        """
        with self._lock:
            thread = self._thread
            loop = self._loop
            if thread is None:
                return

            logger.info("Stopping workflow event loop thread...")
            if loop is not None and loop.is_running():
                loop.call_soon_threadsafe(loop.stop)

            if thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=timeout)
                if thread.is_alive():
                    logger.warning("Workflow thread did not stop cleanly")

            self._thread = None
            logger.info("Workflow event loop thread stopped")
