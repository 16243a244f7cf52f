"""Error taxonomy of the cleaning pipeline.

Field-level errors (``MalformedDate``, ``MalformedRespondents``,
``OutOfRangePercentage``, ``MalformedPartyResult``, ``UnresolvedEntity``) are
recovered locally: the field is left empty and the error is recorded on the
record. ``UnparsableRecord`` rejects one record, ``UpsertFailed`` marks one
record as failed. Neither stops a batch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pollbase.domain.model import RecordState


class PipelineError(Exception):
    """Base class for all cleaning pipeline errors."""


class FieldError(PipelineError):
    """A single raw field could not be interpreted."""

    def __init__(self, message: str, *, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class MalformedDate(FieldError):
    """No known date pattern matched the raw text."""


class MalformedRespondents(FieldError):
    """No respondent count could be read from the raw text."""


class MalformedPartyResult(FieldError):
    """A party-result pair could not be decoded."""


class OutOfRangePercentage(FieldError):
    """A parsed percentage lies outside [0, 100]."""

    def __init__(self, party_name: str, percentage: float) -> None:
        super().__init__(
            f"Percentage {percentage} for {party_name!r} is outside [0, 100]",
            raw_text=party_name,
        )
        self.party_name = party_name
        self.percentage = percentage


class UnresolvedEntity(FieldError):
    """Raw text did not match any alias of the reference table."""

    def __init__(self, kind: str, raw_text: str | None, *, reason: str = "no_match") -> None:
        super().__init__(f"Unresolved {kind}: {raw_text!r} ({reason})", raw_text=raw_text)
        self.kind = kind
        self.reason = reason


class UnparsableRecord(PipelineError):
    """The record cannot produce a clean poll at all."""

    def __init__(self, raw_id: int | None, reason: str) -> None:
        super().__init__(f"Raw poll {raw_id} rejected: {reason}")
        self.raw_id = raw_id
        self.reason = reason


class UpsertFailed(PipelineError):
    """The storage transaction for one candidate failed and was rolled back."""

    def __init__(self, key_token: str, reason: str) -> None:
        super().__init__(f"Upsert for {key_token} failed: {reason}")
        self.key_token = key_token
        self.reason = reason


class InvalidTransition(PipelineError):
    """A record was moved along an edge the state machine does not allow."""

    def __init__(self, current: RecordState, target: RecordState) -> None:
        super().__init__(f"Cannot move record from {current} to {target}")
        self.current = current
        self.target = target


class StorageError(PipelineError):
    """The storage adapter failed to read or write."""


class IdentityConflict(StorageError):
    """Another writer stored the same identity key first."""


class RawPollNotFound(PipelineError):
    """No raw record exists with the requested id."""

    def __init__(self, raw_id: int) -> None:
        super().__init__(f"Raw poll {raw_id} does not exist")
        self.raw_id = raw_id
