"""Raw, as-scraped poll records and their processing status."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import RecordState


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class RawPoll:
    """One scraped record exactly as published.

    Content fields are loosely typed text and are never modified after the
    record has been stored; the consumption status lives in ``RawPollStatus``.
    """

    id: int | None = None
    publish_date_text: str | None = None
    survey_period_text: str | None = None
    respondents_text: str | None = None
    party_results_text: str | None = None
    institute_name_text: str | None = None
    provider_name_text: str | None = None
    scope_text: str | None = None
    election_ref_text: str | None = None
    method_ref_text: str | None = None
    source_url: str | None = None
    retrieved_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class RawPollStatus:
    """Processing bookkeeping for one raw record."""

    raw_id: int
    state: RecordState = RecordState.UNPROCESSED
    attempts: int = 0
    detail: str | None = None
    clean_poll_id: int | None = None
    updated_at: datetime = field(default_factory=_utcnow)

    def record_attempt(
        self,
        state: RecordState,
        *,
        detail: str | None = None,
        clean_poll_id: int | None = None,
    ) -> None:
        self.state = state
        self.attempts += 1
        self.detail = detail
        if clean_poll_id is not None:
            self.clean_poll_id = clean_poll_id
        self.updated_at = _utcnow()
