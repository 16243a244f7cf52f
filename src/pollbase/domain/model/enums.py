"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Scope(StrEnum):
    """Canonical electoral level a poll refers to."""

    FEDERAL = "federal"
    STATE = "state"
    EUROPEAN = "european"
    MUNICIPAL = "municipal"


class ReferenceKind(StrEnum):
    """Reference tables that raw text is resolved against."""

    INSTITUTE = "institute"
    PARTY = "party"
    PROVIDER = "provider"
    METHOD = "method"
    ELECTION = "election"


class MethodHint(StrEnum):
    """Survey method announced inside the respondents column."""

    ONLINE = "online"
    TELEPHONE = "telephone"
    TELEPHONE_ONLINE = "telephone_online"


class RecordState(StrEnum):
    """Position of one raw record in the cleaning state machine."""

    UNPROCESSED = "unprocessed"
    NORMALIZING = "normalizing"
    RESOLVING = "resolving"
    REJECTED = "rejected"
    UPSERTED = "upserted"
    UPSERT_FAILED = "upsert_failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_retryable(self) -> bool:
        return self in RETRYABLE_STATES


TERMINAL_STATES = frozenset({RecordState.REJECTED, RecordState.UPSERTED, RecordState.UPSERT_FAILED})
RETRYABLE_STATES = frozenset({RecordState.REJECTED, RecordState.UPSERT_FAILED})


class UpsertOutcome(StrEnum):
    """What the upsert engine did with one candidate."""

    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
