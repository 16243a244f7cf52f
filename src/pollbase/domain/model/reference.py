"""Reference entities and the immutable snapshot a batch resolves against."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, ClassVar

from .enums import ReferenceKind, Scope

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import date


@dataclass(eq=False, kw_only=True)
class ReferenceEntity:
    """Small, slowly-changing dictionary row with a stable id and unique name."""

    id: int
    name: str

    KIND: ClassVar[ReferenceKind]

    @property
    def kind(self) -> ReferenceKind:
        return self.KIND

    def own_aliases(self) -> tuple[str, ...]:
        """Spellings implied by the row itself (its name)."""
        return (self.name,)


@dataclass(eq=False, kw_only=True)
class Institute(ReferenceEntity):
    short_name: str | None = None

    KIND: ClassVar[ReferenceKind] = ReferenceKind.INSTITUTE

    def own_aliases(self) -> tuple[str, ...]:
        return tuple(value for value in (self.name, self.short_name) if value)


@dataclass(eq=False, kw_only=True)
class Party(ReferenceEntity):
    short_name: str | None = None
    color: str | None = None

    KIND: ClassVar[ReferenceKind] = ReferenceKind.PARTY

    def own_aliases(self) -> tuple[str, ...]:
        return tuple(value for value in (self.name, self.short_name) if value)


@dataclass(eq=False, kw_only=True)
class Provider(ReferenceEntity):
    KIND: ClassVar[ReferenceKind] = ReferenceKind.PROVIDER


@dataclass(eq=False, kw_only=True)
class Method(ReferenceEntity):
    description: str | None = None

    KIND: ClassVar[ReferenceKind] = ReferenceKind.METHOD


@dataclass(eq=False, kw_only=True)
class Election(ReferenceEntity):
    election_date: date | None = None
    scope: Scope | None = None

    KIND: ClassVar[ReferenceKind] = ReferenceKind.ELECTION


ENTITY_CLASS_BY_KIND: dict[ReferenceKind, type[ReferenceEntity]] = {
    ReferenceKind.INSTITUTE: Institute,
    ReferenceKind.PARTY: Party,
    ReferenceKind.PROVIDER: Provider,
    ReferenceKind.METHOD: Method,
    ReferenceKind.ELECTION: Election,
}


@dataclass(eq=False, kw_only=True)
class ReferenceAlias:
    """Historical spelling of a reference entity."""

    kind: ReferenceKind
    entity_id: int
    alias: str
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class ScopeAlias:
    """Raw spelling of a scope token (e.g. "Bundestag" for ``federal``)."""

    alias: str
    scope: Scope


type AliasMap = Mapping[int, frozenset[str]]


@dataclass(frozen=True, slots=True, kw_only=True)
class ReferenceSnapshot:
    """Read-only view of all reference tables, taken once per batch.

    ``aliases`` maps each reference kind to ``canonical id -> known aliases``;
    names and short names of the entities are folded in by ``build``.
    ``version`` is a digest of that alias content so batch logs can tell which
    alias revision a run resolved against.
    """

    institutes: tuple[Institute, ...] = ()
    parties: tuple[Party, ...] = ()
    providers: tuple[Provider, ...] = ()
    methods: tuple[Method, ...] = ()
    elections: tuple[Election, ...] = ()
    aliases: Mapping[ReferenceKind, AliasMap] = field(
        default_factory=lambda: MappingProxyType({})
    )
    scope_aliases: Mapping[Scope, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    version: str = ""

    @classmethod
    def build(
        cls,
        *,
        institutes: Iterable[Institute] = (),
        parties: Iterable[Party] = (),
        providers: Iterable[Provider] = (),
        methods: Iterable[Method] = (),
        elections: Iterable[Election] = (),
        aliases: Iterable[ReferenceAlias] = (),
        scope_aliases: Iterable[ScopeAlias] = (),
    ) -> ReferenceSnapshot:
        entities: dict[ReferenceKind, tuple[ReferenceEntity, ...]] = {
            ReferenceKind.INSTITUTE: tuple(institutes),
            ReferenceKind.PARTY: tuple(parties),
            ReferenceKind.PROVIDER: tuple(providers),
            ReferenceKind.METHOD: tuple(methods),
            ReferenceKind.ELECTION: tuple(elections),
        }

        collected: dict[ReferenceKind, dict[int, set[str]]] = {kind: {} for kind in entities}
        for kind, rows in entities.items():
            for row in rows:
                collected[kind].setdefault(row.id, set()).update(row.own_aliases())
        for alias in aliases:
            known_ids = collected[alias.kind]
            if alias.entity_id not in known_ids:
                continue
            known_ids[alias.entity_id].add(alias.alias)

        scopes: dict[Scope, set[str]] = {scope: {scope.value} for scope in Scope}
        for scope_alias in scope_aliases:
            scopes[scope_alias.scope].add(scope_alias.alias)

        frozen_aliases = MappingProxyType(
            {
                kind: MappingProxyType(
                    {entity_id: frozenset(names) for entity_id, names in by_id.items()}
                )
                for kind, by_id in collected.items()
            }
        )
        frozen_scopes = MappingProxyType(
            {scope: frozenset(names) for scope, names in scopes.items()}
        )
        return cls(
            institutes=entities[ReferenceKind.INSTITUTE],  # pyright: ignore[reportArgumentType]
            parties=entities[ReferenceKind.PARTY],  # pyright: ignore[reportArgumentType]
            providers=entities[ReferenceKind.PROVIDER],  # pyright: ignore[reportArgumentType]
            methods=entities[ReferenceKind.METHOD],  # pyright: ignore[reportArgumentType]
            elections=entities[ReferenceKind.ELECTION],  # pyright: ignore[reportArgumentType]
            aliases=frozen_aliases,
            scope_aliases=frozen_scopes,
            version=_alias_digest(frozen_aliases, frozen_scopes),
        )

    def entities(self, kind: ReferenceKind) -> tuple[ReferenceEntity, ...]:
        match kind:
            case ReferenceKind.INSTITUTE:
                return self.institutes
            case ReferenceKind.PARTY:
                return self.parties
            case ReferenceKind.PROVIDER:
                return self.providers
            case ReferenceKind.METHOD:
                return self.methods
            case ReferenceKind.ELECTION:
                return self.elections

    def aliases_for(self, kind: ReferenceKind) -> AliasMap:
        return self.aliases.get(kind, MappingProxyType({}))


def _alias_digest(
    aliases: Mapping[ReferenceKind, AliasMap],
    scope_aliases: Mapping[Scope, frozenset[str]],
) -> str:
    payload = {
        "aliases": {
            str(kind): {str(entity_id): sorted(names) for entity_id, names in sorted(by_id.items())}
            for kind, by_id in sorted(aliases.items())
        },
        "scopes": {str(scope): sorted(names) for scope, names in sorted(scope_aliases.items())},
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()[:12]
