"""
Ingestion pipeline — orchestration of detection, stability, metadata,
duplicate resolution and import.

Public API:
    IngestionPipeline — owns all items; commands and queries
    DiscoveredItem, ImportStatus — item model and lifecycle
    classify_error — short summary plus detail for item failures
"""

from .engine import IngestionPipeline
from .errors import (
    CommandRejected,
    InvalidStateTransitionError,
    ItemNotFoundError,
    PipelineError,
    classify_error,
)
from .guards import ItemGuards
from .models import DiscoveredItem, ImportStatus, ItemSnapshot, PipelineStatus
from .state import TERMINAL_STATES, can_transition, is_terminal, validate_transition

__all__ = [
    "IngestionPipeline",
    "CommandRejected",
    "InvalidStateTransitionError",
    "ItemNotFoundError",
    "PipelineError",
    "classify_error",
    "ItemGuards",
    "DiscoveredItem",
    "ImportStatus",
    "ItemSnapshot",
    "PipelineStatus",
    "TERMINAL_STATES",
    "can_transition",
    "is_terminal",
    "validate_transition",
]
