"""
Services layer for ArtPrintWeb.

This module contains the order workflow services:
- WorkflowRunner: Background thread owning the workflow event loop
- OrderOrchestrator: Per-session order state machine
- OrderSessionRegistry: Thread-safe map of session id to orchestrator

Thread Model:
    Main Thread / request threads (Flask)
    └── Workflow thread (one asyncio loop for every session's coroutines)
"""

from .workflow_runner import WorkflowRunner
from .order_orchestrator import (
    OrderOrchestrator,
    WorkflowState,
    ConnectionStatus,
    WorkflowSettings,
)
from .session_registry import OrderSessionRegistry, new_session_id

__all__ = [
    "WorkflowRunner",
    "OrderOrchestrator",
    "WorkflowState",
    "ConnectionStatus",
    "WorkflowSettings",
    "OrderSessionRegistry",
    "new_session_id",
]
