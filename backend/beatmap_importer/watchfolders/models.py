"""
Watch folder data models.

All models use Pydantic with strict validation and no silent coercion.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class StabilityState(str, Enum):
    """Outcome of one stability wait."""

    POLLING = "polling"
    STABLE = "stable"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    MISSING = "missing"


class FileReading(BaseModel):
    """Size and modification time of a file at one poll."""

    model_config = {"extra": "forbid", "frozen": True}

    size_bytes: int
    mtime_ns: int


class FileStabilityCheck(BaseModel):
    """
    Result of a file stability check.

    Files are considered stable when size and modification time have not
    changed for a configured number of consecutive checks.
    """

    model_config = {"extra": "forbid"}

    path: str = Field(..., description="Absolute path to checked file")
    is_stable: bool = Field(..., description="Whether file is stable")
    size_bytes: Optional[int] = Field(
        None, description="Current file size in bytes (None if file inaccessible)"
    )
    check_count: int = Field(
        default=0, description="Number of consecutive unchanged readings"
    )
    reason: Optional[str] = Field(
        None, description="Human-readable explanation if unstable or inaccessible"
    )


class StabilityResult(BaseModel):
    """Final outcome of waiting for a file to stop changing."""

    model_config = {"extra": "forbid"}

    path: str
    state: StabilityState
    check_count: int = 0
    polls: int = 0
    elapsed_seconds: float = 0.0

    @property
    def is_stable(self) -> bool:
        return self.state == StabilityState.STABLE
