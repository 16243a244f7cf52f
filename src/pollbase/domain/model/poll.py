"""Clean, analysis-ready polls and their party results."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .primitives import ResultValue

if TYPE_CHECKING:
    from datetime import date

    from .enums import Scope
    from .primitives import IdentityKey


def identity_token(key: IdentityKey) -> str:
    """Serialize an identity key into the string stored in the unique column."""

    publish_date, institute_id, scope, provider_id = key
    payload = [
        publish_date.isoformat(),
        institute_id,
        str(scope) if scope is not None else None,
        provider_id,
    ]
    return json.dumps(payload, separators=(",", ":"))


@dataclass(frozen=True, slots=True, kw_only=True)
class PollCandidate:
    """Fully normalized and resolved poll, ready for the upsert engine."""

    publish_date: date
    raw_id: int | None = None
    survey_date_start: date | None = None
    survey_date_end: date | None = None
    respondents: int | None = None
    institute_id: int | None = None
    provider_id: int | None = None
    election_id: int | None = None
    method_id: int | None = None
    scope: Scope | None = None
    source_url: str | None = None
    results: tuple[ResultValue, ...] = ()

    def __post_init__(self) -> None:
        if (
            self.survey_date_start is not None
            and self.survey_date_end is not None
            and self.survey_date_start > self.survey_date_end
        ):
            raise ValueError("survey_date_start must not be after survey_date_end")
        if self.respondents is not None and self.respondents <= 0:
            raise ValueError("respondents must be strictly positive")
        party_ids = [result.party_id for result in self.results]
        if len(party_ids) != len(set(party_ids)):
            raise ValueError("a party may appear only once per poll")

    @property
    def identity_key(self) -> IdentityKey:
        return (self.publish_date, self.institute_id, self.scope, self.provider_id)

    @property
    def content(self) -> tuple[object, ...]:
        return (
            self.survey_date_start,
            self.survey_date_end,
            self.respondents,
            self.election_id,
            self.method_id,
            self.source_url,
        )

    @property
    def result_values(self) -> frozenset[ResultValue]:
        return frozenset(self.results)


@dataclass(eq=False, kw_only=True)
class PollResult:
    """One party's share within one clean poll."""

    party_id: int
    percentage: float
    poll_id: int | None = None

    def as_value(self) -> ResultValue:
        return ResultValue(party_id=self.party_id, percentage=self.percentage)


@dataclass(eq=False, kw_only=True)
class CleanPoll:
    """Normalized poll; at most one row exists per identity key."""

    publish_date: date
    id: int | None = None
    raw_id: int | None = None
    survey_date_start: date | None = None
    survey_date_end: date | None = None
    respondents: int | None = None
    institute_id: int | None = None
    provider_id: int | None = None
    election_id: int | None = None
    method_id: int | None = None
    scope: Scope | None = None
    source_url: str | None = None
    key_token: str = ""
    updated_at: datetime | None = None
    results: list[PollResult] = field(default_factory=list["PollResult"])

    @classmethod
    def from_candidate(cls, candidate: PollCandidate) -> CleanPoll:
        poll = cls(
            publish_date=candidate.publish_date,
            institute_id=candidate.institute_id,
            scope=candidate.scope,
            provider_id=candidate.provider_id,
        )
        poll.apply(candidate)
        poll.key_token = identity_token(candidate.identity_key)
        poll.results = [
            PollResult(party_id=value.party_id, percentage=value.percentage)
            for value in candidate.results
        ]
        return poll

    @property
    def identity_key(self) -> IdentityKey:
        return (self.publish_date, self.institute_id, self.scope, self.provider_id)

    @property
    def content(self) -> tuple[object, ...]:
        return (
            self.survey_date_start,
            self.survey_date_end,
            self.respondents,
            self.election_id,
            self.method_id,
            self.source_url,
        )

    @property
    def result_values(self) -> frozenset[ResultValue]:
        return frozenset(result.as_value() for result in self.results)

    def matches(self, candidate: PollCandidate) -> bool:
        """Return True when ``candidate`` would not change this poll."""

        return self.content == candidate.content and self.result_values == candidate.result_values

    def apply(self, candidate: PollCandidate) -> None:
        """Copy the mutable (non-key) fields of ``candidate`` onto this poll."""

        self.raw_id = candidate.raw_id
        self.survey_date_start = candidate.survey_date_start
        self.survey_date_end = candidate.survey_date_end
        self.respondents = candidate.respondents
        self.election_id = candidate.election_id
        self.method_id = candidate.method_id
        self.source_url = candidate.source_url
        self.updated_at = datetime.now(tz=UTC)
