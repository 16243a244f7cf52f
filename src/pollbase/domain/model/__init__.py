"""Public domain model surface."""

from __future__ import annotations

from .enums import (
    RETRYABLE_STATES,
    TERMINAL_STATES,
    MethodHint,
    RecordState,
    ReferenceKind,
    Scope,
    UpsertOutcome,
)
from .poll import CleanPoll, PollCandidate, PollResult, identity_token
from .primitives import DateRange, IdentityKey, RespondentCount, ResultValue
from .raw import RawPoll, RawPollStatus
from .reference import (
    ENTITY_CLASS_BY_KIND,
    Election,
    Institute,
    Method,
    Party,
    Provider,
    ReferenceAlias,
    ReferenceEntity,
    ReferenceSnapshot,
    ScopeAlias,
)

__all__ = [
    "ENTITY_CLASS_BY_KIND",
    "RETRYABLE_STATES",
    "TERMINAL_STATES",
    "CleanPoll",
    "DateRange",
    "Election",
    "IdentityKey",
    "Institute",
    "Method",
    "MethodHint",
    "Party",
    "PollCandidate",
    "PollResult",
    "Provider",
    "RawPoll",
    "RawPollStatus",
    "RecordState",
    "ReferenceAlias",
    "ReferenceEntity",
    "ReferenceKind",
    "ReferenceSnapshot",
    "RespondentCount",
    "ResultValue",
    "Scope",
    "ScopeAlias",
    "UpsertOutcome",
    "identity_token",
]
