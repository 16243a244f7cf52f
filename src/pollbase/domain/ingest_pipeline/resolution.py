"""Alias-table entity resolution and the resolution phase."""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from pollbase.domain.errors import MalformedPartyResult, UnparsableRecord, UnresolvedEntity
from pollbase.domain.model import PollCandidate, ReferenceKind, ResultValue, Scope

from .orchestrator import PipelinePhase

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from pollbase.domain.model import MethodHint, ReferenceSnapshot

    from .context import PipelineContext, RecordContext

log = logging.getLogger(__name__)


def normalize_alias(text: str) -> str:
    """Unicode-normalize, casefold and collapse whitespace."""

    return " ".join(unicodedata.normalize("NFKC", text).casefold().split())


@dataclass(frozen=True, slots=True)
class AliasTable[TKey]:
    """Inverted index ``normalized alias -> canonical ids`` for one kind.

    ``resolve`` tries an exact alias match first and falls back to the longest
    alias contained in the raw text. Aliases shorter than
    ``min_containment_length`` never match by containment.
    """

    kind: str
    index: Mapping[str, frozenset[TKey]] = field(default_factory=lambda: MappingProxyType({}))
    min_containment_length: int = 2

    @classmethod
    def from_aliases(
        cls,
        kind: str,
        aliases: Mapping[TKey, Iterable[str]],
        *,
        min_containment_length: int = 2,
    ) -> AliasTable[TKey]:
        index: dict[str, set[TKey]] = {}
        for key, names in aliases.items():
            for name in names:
                normalized = normalize_alias(name)
                if normalized:
                    index.setdefault(normalized, set()).add(key)
        return cls(
            kind=kind,
            index=MappingProxyType({alias: frozenset(keys) for alias, keys in index.items()}),
            min_containment_length=min_containment_length,
        )

    def lookup(self, text: str | None) -> TKey | None:
        """Exact-match lookup; ``None`` when absent or ambiguous."""

        keys = self.index.get(normalize_alias(text or ""))
        if keys is None or len(keys) != 1:
            return None
        return next(iter(keys))

    def resolve(self, text: str | None) -> TKey:
        normalized = normalize_alias(text or "")
        if not normalized:
            raise UnresolvedEntity(self.kind, text, reason="empty")

        exact = self.index.get(normalized)
        if exact is not None:
            return self._single(exact, text)

        best_length = 0
        best: set[TKey] = set()
        for alias, keys in self.index.items():
            if len(alias) < self.min_containment_length or alias not in normalized:
                continue
            if len(alias) > best_length:
                best_length = len(alias)
                best = set(keys)
            elif len(alias) == best_length:
                best.update(keys)

        if not best:
            raise UnresolvedEntity(self.kind, text, reason="no_match")
        return self._single(frozenset(best), text)

    def _single(self, keys: frozenset[TKey], text: str | None) -> TKey:
        if len(keys) > 1:
            raise UnresolvedEntity(self.kind, text, reason="ambiguous")
        return next(iter(keys))


class EntityResolver:
    """Resolve free text to reference ids against one ``ReferenceSnapshot``."""

    def __init__(self, snapshot: ReferenceSnapshot, *, min_containment_length: int = 2) -> None:
        self.snapshot = snapshot
        self._tables: dict[ReferenceKind, AliasTable[int]] = {
            kind: AliasTable.from_aliases(
                str(kind),
                snapshot.aliases_for(kind),
                min_containment_length=min_containment_length,
            )
            for kind in ReferenceKind
        }
        self._scopes: AliasTable[Scope] = AliasTable.from_aliases(
            "scope", snapshot.scope_aliases, min_containment_length=min_containment_length
        )

    def table(self, kind: ReferenceKind) -> AliasTable[int]:
        return self._tables[kind]

    def resolve(self, kind: ReferenceKind, text: str | None) -> int:
        return self._tables[kind].resolve(text)

    def resolve_institute(self, text: str | None) -> int:
        return self.resolve(ReferenceKind.INSTITUTE, text)

    def resolve_provider(self, text: str | None) -> int:
        return self.resolve(ReferenceKind.PROVIDER, text)

    def resolve_party(self, text: str | None) -> int:
        return self.resolve(ReferenceKind.PARTY, text)

    def resolve_scope(self, text: str | None) -> Scope:
        return self._scopes.resolve(text)

    def resolve_method(self, text: str | None, hint: MethodHint | None = None) -> int:
        """Resolve the method reference, falling back to the respondents hint.

        The hint is matched exactly against the method aliases, so seed data
        maps hint values like ``online`` to a method explicitly.
        """

        table = self._tables[ReferenceKind.METHOD]
        try:
            return table.resolve(text)
        except UnresolvedEntity:
            if hint is None:
                raise
            method_id = table.lookup(hint.value)
            if method_id is None:
                raise
            return method_id

    def resolve_election(self, text: str | None, scope: Scope | None) -> int:
        """Resolve the election reference, else the latest election of ``scope``."""

        try:
            return self.resolve(ReferenceKind.ELECTION, text)
        except UnresolvedEntity:
            if scope is None:
                raise
            fallback = self.latest_election(scope)
            if fallback is None:
                raise
            log.debug("Election %r resolved to latest %s election %s", text, scope, fallback)
            return fallback

    def latest_election(self, scope: Scope) -> int | None:
        dated = [
            election
            for election in self.snapshot.elections
            if election.scope == scope and election.election_date is not None
        ]
        if not dated:
            return None
        latest = max(dated, key=lambda election: (election.election_date, election.id))
        return latest.id


def _is_blank(text: str | None) -> bool:
    return text is None or not text.strip()


class ResolutionPhase(PipelinePhase):
    """Resolve reference text and build the ``PollCandidate``.

    Unresolved kinds listed in ``PipelineConfig.blocking_entities`` reject the
    record (a missing value counts as unresolved); every other unresolved
    reference is left empty and recorded as a field failure.
    """

    name: str = "resolution"

    def run(self, record: RecordContext, *, context: PipelineContext) -> None:
        resolver = context.resolver
        raw = record.raw
        blocked: list[str] = []

        def attempt[T](
            field_name: str,
            kind: ReferenceKind | None,
            present: bool,
            resolve: Callable[[], T],
        ) -> T | None:
            is_blocking = kind is not None and kind in context.config.blocking_entities
            if not present and not is_blocking:
                return None
            try:
                return resolve()
            except UnresolvedEntity as exc:
                record.record_failure(field_name, exc)
                if is_blocking:
                    blocked.append(field_name)
                return None

        institute_id = attempt(
            "institute",
            ReferenceKind.INSTITUTE,
            not _is_blank(raw.institute_name_text),
            lambda: resolver.resolve_institute(raw.institute_name_text),
        )
        provider_id = attempt(
            "provider",
            ReferenceKind.PROVIDER,
            not _is_blank(raw.provider_name_text),
            lambda: resolver.resolve_provider(raw.provider_name_text),
        )
        scope = attempt(
            "scope",
            None,
            not _is_blank(raw.scope_text),
            lambda: resolver.resolve_scope(raw.scope_text),
        )

        respondents = record.fields.respondents
        hint = respondents.method_hint if respondents is not None else None
        method_id = attempt(
            "method",
            ReferenceKind.METHOD,
            not _is_blank(raw.method_ref_text) or hint is not None,
            lambda: resolver.resolve_method(raw.method_ref_text, hint),
        )
        election_id = attempt(
            "election",
            ReferenceKind.ELECTION,
            not _is_blank(raw.election_ref_text) or scope is not None,
            lambda: resolver.resolve_election(raw.election_ref_text, scope),
        )
        results = self._resolve_results(
            record,
            resolver,
            blocked,
            party_blocking=ReferenceKind.PARTY in context.config.blocking_entities,
        )

        if blocked:
            raise UnparsableRecord(
                record.raw_id, f"unresolved blocking reference: {', '.join(blocked)}"
            )

        fields = record.fields
        publish_date = fields.publish_date
        if publish_date is None:
            raise RuntimeError("Normalization must run before resolution")
        period = fields.survey_period
        record.candidate = PollCandidate(
            publish_date=publish_date,
            raw_id=raw.id,
            survey_date_start=period.start if period is not None else None,
            survey_date_end=period.end if period is not None else None,
            respondents=respondents.count if respondents is not None else None,
            institute_id=institute_id,
            provider_id=provider_id,
            election_id=election_id,
            method_id=method_id,
            scope=scope,
            source_url=raw.source_url,
            results=results,
        )

    def _resolve_results(
        self,
        record: RecordContext,
        resolver: EntityResolver,
        blocked: list[str],
        *,
        party_blocking: bool,
    ) -> tuple[ResultValue, ...]:
        parsed = record.fields.party_results
        if parsed is None:
            return ()

        values: list[ResultValue] = []
        seen: set[int] = set()
        for pair in parsed.pairs:
            if pair.out_of_range:
                # already recorded by normalization; never stored
                continue
            try:
                party_id = resolver.resolve_party(pair.name)
            except UnresolvedEntity as exc:
                record.record_failure("party_results", exc)
                if party_blocking and "party_results" not in blocked:
                    blocked.append("party_results")
                continue
            if party_id in seen:
                record.record_failure(
                    "party_results",
                    MalformedPartyResult(
                        f"Duplicate result for party {party_id} ({pair.name!r})",
                        raw_text=pair.name,
                    ),
                )
                continue
            seen.add(party_id)
            values.append(ResultValue(party_id=party_id, percentage=pair.percentage))
        return tuple(values)
