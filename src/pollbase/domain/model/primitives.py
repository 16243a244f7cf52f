"""Domain primitives: scalar aliases + small value objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date

    from .enums import MethodHint, Scope

type IdentityKey = tuple[date, int | None, Scope | None, int | None]


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive survey period; a single-day survey has ``start == end``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Date range start {self.start} is after end {self.end}")


@dataclass(frozen=True, slots=True)
class RespondentCount:
    count: int
    method_hint: MethodHint | None = None


@dataclass(frozen=True, slots=True)
class ResultValue:
    """One (party, percentage) pair of a clean poll, used for comparisons."""

    party_id: int
    percentage: float
