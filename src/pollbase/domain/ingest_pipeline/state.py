"""Per-record state machine of the cleaning pipeline."""

from __future__ import annotations

from typing import Final

from pollbase.domain.errors import InvalidTransition
from pollbase.domain.model import RecordState

ALLOWED_TRANSITIONS: Final[dict[RecordState, frozenset[RecordState]]] = {
    RecordState.UNPROCESSED: frozenset({RecordState.NORMALIZING}),
    RecordState.NORMALIZING: frozenset({RecordState.REJECTED, RecordState.RESOLVING}),
    RecordState.RESOLVING: frozenset(
        {RecordState.REJECTED, RecordState.UPSERTED, RecordState.UPSERT_FAILED}
    ),
}


def can_transition(current: RecordState, target: RecordState) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def advance(current: RecordState, target: RecordState) -> RecordState:
    """Return ``target`` if the edge ``current -> target`` exists, else raise."""

    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    return target
