"""Read-side filter objects consumed by the API collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date

    from pollbase.domain.model import Scope


@dataclass(frozen=True, slots=True, kw_only=True)
class CleanPollFilter:
    """Filter for clean polls; ``None`` means "do not filter on this column"."""

    scope: Scope | None = None
    institute_id: int | None = None
    provider_id: int | None = None
    election_id: int | None = None
    method_id: int | None = None
    published_from: date | None = None
    published_to: date | None = None
    limit: int | None = None
    offset: int = 0

    def __post_init__(self) -> None:
        if (
            self.published_from is not None
            and self.published_to is not None
            and self.published_from > self.published_to
        ):
            raise ValueError("published_from must not be after published_to")
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit must be non-negative")
        if self.offset < 0:
            raise ValueError("offset must be non-negative")


@dataclass(frozen=True, slots=True, kw_only=True)
class ResultFilter:
    """Filter for the flattened (poll, party) results view."""

    polls: CleanPollFilter = CleanPollFilter()
    party_id: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ResultRow:
    """One row of the flattened results view."""

    poll_id: int
    publish_date: date
    institute_id: int | None
    provider_id: int | None
    election_id: int | None
    scope: Scope | None
    party_id: int
    percentage: float
