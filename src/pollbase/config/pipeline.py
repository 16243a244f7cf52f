"""Batch defaults for the cleaning pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from pollbase.domain.model.enums import ReferenceKind

from .env import optional_int_env
from .errors import InvalidConfigurationValue

DEFAULT_BATCH_LIMIT = 0
DEFAULT_WORKERS = 1
DEFAULT_MIN_CONTAINMENT_LENGTH = 2
DEFAULT_BLOCKING_ENTITIES = frozenset({ReferenceKind.INSTITUTE})


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Tunables for one orchestrator batch.

    ``batch_limit`` of 0 means "every eligible raw record". ``blocking_entities``
    lists the reference kinds whose resolution failure rejects the whole record
    instead of leaving the foreign key empty.
    """

    batch_limit: int = DEFAULT_BATCH_LIMIT
    workers: int = DEFAULT_WORKERS
    min_containment_length: int = DEFAULT_MIN_CONTAINMENT_LENGTH
    blocking_entities: frozenset[ReferenceKind] = field(
        default_factory=lambda: DEFAULT_BLOCKING_ENTITIES
    )


def _parse_blocking_entities(raw: str | None) -> frozenset[ReferenceKind]:
    if raw is None:
        return DEFAULT_BLOCKING_ENTITIES
    kinds: set[ReferenceKind] = set()
    for token in raw.split(","):
        name = token.strip().lower()
        if not name:
            continue
        try:
            kinds.add(ReferenceKind(name))
        except ValueError as exc:
            expected = "a comma separated list of " + ", ".join(kind.value for kind in ReferenceKind)
            raise InvalidConfigurationValue("POLLBASE_BLOCKING_ENTITIES", raw, expected) from exc
    return frozenset(kinds)


def get_pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        batch_limit=optional_int_env("POLLBASE_BATCH_LIMIT", DEFAULT_BATCH_LIMIT, minimum=0),
        workers=optional_int_env("POLLBASE_WORKERS", DEFAULT_WORKERS, minimum=1),
        min_containment_length=optional_int_env(
            "POLLBASE_MIN_CONTAINMENT_LENGTH", DEFAULT_MIN_CONTAINMENT_LENGTH, minimum=1
        ),
        blocking_entities=_parse_blocking_entities(os.getenv("POLLBASE_BLOCKING_ENTITIES")),
    )
