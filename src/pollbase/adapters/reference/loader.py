"""Load the TOML reference seed file and store it through the repository."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import ValidationError

from .schema import ReferenceSeed

if TYPE_CHECKING:
    from pathlib import Path

    from pollbase.domain.ports import ReferenceRepository

log = logging.getLogger(__name__)


class ReferenceSeedError(ValueError):
    """The seed file is missing, not TOML, or does not match the schema."""


@dataclass(slots=True)
class SeedReport:
    entities: int = 0
    aliases_added: int = 0
    scope_aliases_added: int = 0


def load_reference_seed(path: Path) -> ReferenceSeed:
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ReferenceSeedError(f"Reference seed file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ReferenceSeedError(f"{path}: invalid TOML: {exc}") from exc

    try:
        return ReferenceSeed.model_validate(document)
    except ValidationError as exc:
        raise ReferenceSeedError(f"{path}: {exc}") from exc


def seed_references(seed: ReferenceSeed, repository: ReferenceRepository) -> SeedReport:
    """Upsert every entity by id, then add aliases not yet known.

    Aliases are only ever added or re-pointed, never deleted, so a seed file
    that omits an alias does not break records that were resolved with it.
    """

    report = SeedReport()
    for kind, payloads in seed.payloads().items():
        for payload in payloads:
            repository.save_entity(payload.to_entity())
            report.entities += 1
        for payload in payloads:
            for alias in payload.to_aliases(kind):
                if repository.save_alias(alias):
                    report.aliases_added += 1
    for scope_alias in seed.scope_alias_rows():
        if repository.save_scope_alias(scope_alias):
            report.scope_aliases_added += 1

    log.info(
        "Seeded %d reference entities, %d new aliases, %d new scope aliases",
        report.entities,
        report.aliases_added,
        report.scope_aliases_added,
    )
    return report
