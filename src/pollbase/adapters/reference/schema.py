"""Pydantic models describing the reference-data seed file."""

from __future__ import annotations

from datetime import date  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pollbase.domain.model import (
    Election,
    Institute,
    Method,
    Party,
    Provider,
    ReferenceAlias,
    ReferenceEntity,
    ReferenceKind,
    Scope,
    ScopeAlias,
)


class SeedBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class EntityPayload(SeedBaseModel):
    id: int = Field(ge=1)
    name: str = Field(min_length=1)
    aliases: list[str] = Field(default_factory=list)

    @field_validator("aliases")
    @classmethod
    def _strip_aliases(cls, value: list[str]) -> list[str]:
        return [alias.strip() for alias in value if alias.strip()]

    def to_entity(self) -> ReferenceEntity:
        raise NotImplementedError

    def to_aliases(self, kind: ReferenceKind) -> list[ReferenceAlias]:
        return [ReferenceAlias(kind=kind, entity_id=self.id, alias=alias) for alias in self.aliases]


class InstitutePayload(EntityPayload):
    short_name: str | None = None

    def to_entity(self) -> Institute:
        return Institute(id=self.id, name=self.name, short_name=self.short_name)


class PartyPayload(EntityPayload):
    short_name: str | None = None
    color: str | None = None

    def to_entity(self) -> Party:
        return Party(id=self.id, name=self.name, short_name=self.short_name, color=self.color)


class ProviderPayload(EntityPayload):
    def to_entity(self) -> Provider:
        return Provider(id=self.id, name=self.name)


class MethodPayload(EntityPayload):
    description: str | None = None

    def to_entity(self) -> Method:
        return Method(id=self.id, name=self.name, description=self.description)


class ElectionPayload(EntityPayload):
    election_date: date | None = Field(default=None, alias="date")
    scope: Scope | None = None

    def to_entity(self) -> Election:
        return Election(
            id=self.id, name=self.name, election_date=self.election_date, scope=self.scope
        )


class ReferenceSeed(SeedBaseModel):
    """Whole seed document: one array of tables per reference kind."""

    institutes: list[InstitutePayload] = Field(default_factory=list, alias="institute")
    parties: list[PartyPayload] = Field(default_factory=list, alias="party")
    providers: list[ProviderPayload] = Field(default_factory=list, alias="provider")
    methods: list[MethodPayload] = Field(default_factory=list, alias="method")
    elections: list[ElectionPayload] = Field(default_factory=list, alias="election")
    scope_aliases: dict[Scope, list[str]] = Field(default_factory=dict)

    def payloads(self) -> dict[ReferenceKind, list[EntityPayload]]:
        return {
            ReferenceKind.INSTITUTE: list(self.institutes),
            ReferenceKind.PARTY: list(self.parties),
            ReferenceKind.PROVIDER: list(self.providers),
            ReferenceKind.METHOD: list(self.methods),
            ReferenceKind.ELECTION: list(self.elections),
        }

    def scope_alias_rows(self) -> list[ScopeAlias]:
        return [
            ScopeAlias(alias=alias.strip(), scope=scope)
            for scope, aliases in self.scope_aliases.items()
            for alias in aliases
            if alias.strip()
        ]
