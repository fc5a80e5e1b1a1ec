# app/domain/models.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

DEFAULT_STATUS = "SCHEDULED"


# -------------------- Static schedule --------------------


@dataclass(frozen=True)
class ScheduledDeparture:
    trip_id: str
    stop_sequence: str  # as in stop_times.txt, never coerced
    departure_time: str  # HH:MM:SS, may exceed 24:00:00
    arrival_time: str


@dataclass(frozen=True)
class ScheduledDepartureSet:
    route_id: str
    route_name: str
    departures: tuple[ScheduledDeparture, ...] = ()

    def __len__(self) -> int:
        return len(self.departures)

    def trip_ids(self) -> list[str]:
        return [d.trip_id for d in self.departures]


# -------------------- API payload --------------------


class RealtimeInfo(BaseModel):
    delay: int = 0
    status: str = DEFAULT_STATUS
    lastUpdate: str | None = Field(None, description="ISO-8601 UTC or null")


class CombinedDeparture(BaseModel):
    scheduled_time: str
    departure_time: str
    realtime: RealtimeInfo = Field(default_factory=RealtimeInfo)


# -------------------- Stage outcomes --------------------


class ErrorKind(str, Enum):
    INGESTION = "ingestion"
    MALFORMED_DATA = "malformed_data"
    MERGE = "merge"


@dataclass(frozen=True)
class StageError:
    kind: ErrorKind
    detail: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.detail}"


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Value produced by a pipeline stage, plus the error that degraded it (if any).

    A failed stage still carries a usable (empty) value so the caller can decide
    whether to publish it or keep what it already has.
    """

    value: T
    error: StageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> StageResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, value: T, kind: ErrorKind, detail: str) -> StageResult[T]:
        return cls(value=value, error=StageError(kind=kind, detail=detail))


@dataclass
class SlotState:
    """Bookkeeping for one store slot (schedule or realtime)."""

    name: str
    refreshed_at: float = 0.0
    refresh_count: int = 0
    errors_streak: int = 0
    last_error: StageError | None = None
