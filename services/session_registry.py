"""
Per-session order orchestrators.

Each wizard session (one browser tab walking through the ship step) gets its
own OrderOrchestrator. Request threads look them up here; the orchestrators
themselves only ever run on the WorkflowRunner loop.

Thread Safety:
    - The session -> orchestrator map is guarded by a threading.Lock
    - Disposal is handed to the workflow loop, never run on a request thread

Idle Expiry:
    A tab that closes without calling dispose leaves its orchestrator behind.
    Every get() and create() marks the session as touched; sessions untouched
    for longer than idle_timeout are disposed by sweep_idle(), which the
    sweeper task runs periodically on the workflow loop.

Usage:
    registry = OrderSessionRegistry(factory, runner, idle_timeout=1800)
    registry.start_sweeper(interval_seconds=60)

    orchestrator = registry.create(session_id)   # replaces any previous one
    orchestrator = registry.get(session_id)      # None if unknown
    registry.dispose(session_id)                 # user navigated away

    # At app shutdown
    registry.shutdown()
"""

from __future__ import annotations

import asyncio
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from logging_config import get_logger
from services.order_orchestrator import OrderOrchestrator
from services.workflow_runner import WorkflowRunner


# Module logger
logger = get_logger(__name__)

OrchestratorFactory = Callable[[str], OrderOrchestrator]


def new_session_id() -> str:
    return uuid.uuid4().hex


class OrderSessionRegistry:
    """Thread-safe map of wizard session id to its orchestrator."""

    def __init__(
        self,
        factory: OrchestratorFactory,
        runner: WorkflowRunner,
        dispose_timeout: float = 10.0,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            factory: Builds a fresh orchestrator for a session id
            runner: Workflow loop the orchestrators run on
            dispose_timeout: Max seconds to wait for one disposal
            idle_timeout: Seconds without a get()/create() before a session
                is expired (None or 0 keeps sessions until disposed)
            clock: Monotonic time source (tests pass a fake)
        """
        self._factory = factory
        self._runner = runner
        self._dispose_timeout = dispose_timeout
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: Dict[str, OrderOrchestrator] = {}
        self._last_touched: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._sweeper = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def get(self, session_id: Optional[str]) -> Optional[OrderOrchestrator]:
        if not session_id:
            return None
        with self._lock:
            orchestrator = self._sessions.get(session_id)
            if orchestrator is not None:
                self._last_touched[session_id] = self._clock()
            return orchestrator

    def create(self, session_id: str) -> OrderOrchestrator:
        """
        Build a fresh orchestrator for the session.

        Any orchestrator the session already had is disposed first, which
        cancels its mockup poll. The orchestrator (and its HTTP clients) is
        built on the workflow loop thread it will run on.
        """
        orchestrator = self._runner.call(self._factory, session_id, timeout=self._dispose_timeout)
        with self._lock:
            previous = self._sessions.get(session_id)
            self._sessions[session_id] = orchestrator
            self._last_touched[session_id] = self._clock()

        if previous is not None:
            logger.info(f"Replacing order session {session_id[:8]}")
            self._dispose_orchestrator(session_id, previous)
        else:
            logger.info(f"Created order session {session_id[:8]}")
        return orchestrator

    def dispose(self, session_id: Optional[str]) -> bool:
        """
        Drop and tear down the session's orchestrator.

        Returns:
            True if there was one to dispose
        """
        if not session_id:
            return False
        with self._lock:
            orchestrator = self._sessions.pop(session_id, None)
            self._last_touched.pop(session_id, None)

        if orchestrator is None:
            return False

        self._dispose_orchestrator(session_id, orchestrator)
        logger.info(f"Disposed order session {session_id[:8]}")
        return True

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    # =========================================================================
    # IDLE EXPIRY
    # =========================================================================

    def _pop_idle(self) -> List[Tuple[str, OrderOrchestrator]]:
        """Remove and return every session idle past the timeout."""
        if not self._idle_timeout:
            return []
        cutoff = self._clock() - self._idle_timeout
        with self._lock:
            expired = [sid for sid, touched in self._last_touched.items() if touched <= cutoff]
            for session_id in expired:
                self._last_touched.pop(session_id, None)
            return [(sid, self._sessions.pop(sid)) for sid in expired if sid in self._sessions]

    def sweep_idle(self) -> int:
        """
        Dispose sessions nobody has touched within the idle timeout.

        Blocks on the workflow loop; call from a thread other than the loop's
        own (the sweeper task uses the async variant).

        Returns:
            Number of sessions expired
        """
        expired = self._pop_idle()
        for session_id, orchestrator in expired:
            logger.info(f"Expiring idle order session {session_id[:8]}")
            self._dispose_orchestrator(session_id, orchestrator)
        return len(expired)

    async def _sweep_idle_async(self) -> int:
        expired = self._pop_idle()
        for session_id, orchestrator in expired:
            logger.info(f"Expiring idle order session {session_id[:8]}")
            try:
                await orchestrator.dispose()
            except Exception as e:
                logger.error(f"Error disposing session {session_id[:8]}: {e}", exc_info=True)
        return len(expired)

    async def _sweep_forever(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            await self._sweep_idle_async()

    def start_sweeper(self, interval_seconds: float) -> bool:
        """
        Run sweep_idle periodically on the workflow loop.

        Does nothing when no idle timeout is set or a sweeper is running.
        The task is cancelled when the runner stops.

        Returns:
            True if a sweeper was started
        """
        if not self._idle_timeout or self._sweeper is not None:
            return False
        self._sweeper = self._runner.submit(self._sweep_forever(interval_seconds))
        logger.info(
            f"Idle session sweeper started "
            f"(idle_timeout={self._idle_timeout}s, interval={interval_seconds}s)"
        )
        return True

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self) -> int:
        """
        Dispose every session. Call during application shutdown.

        Returns:
            Number of sessions disposed
        """
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None

        with self._lock:
            sessions = list(self._sessions.items())
            self._sessions.clear()
            self._last_touched.clear()

        for session_id, orchestrator in sessions:
            self._dispose_orchestrator(session_id, orchestrator)

        logger.info(f"Order session registry shut down ({len(sessions)} sessions)")
        return len(sessions)

    def _dispose_orchestrator(self, session_id: str, orchestrator: OrderOrchestrator) -> None:
        if not self._runner.is_running:
            logger.warning(f"Workflow loop stopped; session {session_id[:8]} not disposed cleanly")
            return
        try:
            self._runner.run(orchestrator.dispose(), timeout=self._dispose_timeout)
        except Exception as e:
            logger.error(f"Error disposing session {session_id[:8]}: {e}", exc_info=True)
