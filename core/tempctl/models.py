"""
tempctl Data Models

Results produced by a room check and by a polling cycle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class HeatingDecision:
    """Outcome of one room check."""

    room_name: str
    is_heating: bool
    active: bool
    occupied: Optional[bool] = None  # None when the lookup was skipped
    temperature: Optional[float] = None


@dataclass
class RoomCheckResult:
    """One room's slot in a polling cycle."""

    room_name: str
    decision: Optional[HeatingDecision] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CycleReport:
    """All room results of one polling cycle, in room order."""

    started_at: datetime
    results: list[RoomCheckResult] = field(default_factory=list)

    @property
    def errors(self) -> list[RoomCheckResult]:
        return [r for r in self.results if not r.ok]

    @property
    def heating_rooms(self) -> list[str]:
        return [r.room_name for r in self.results if r.decision and r.decision.is_heating]
