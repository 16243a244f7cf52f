"""Identity-key deduplication and the idempotent upsert engine."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pollbase.domain.errors import IdentityConflict, StorageError, UpsertFailed
from pollbase.domain.model import CleanPoll, RecordState, UpsertOutcome, identity_token

from .orchestrator import PipelinePhase

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from pollbase.domain.model import PollCandidate

    from .context import PipelineContext, RecordContext
    from .ingest_ports import IngestUnitOfWork

log = logging.getLogger(__name__)


@dataclass(slots=True)
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class KeyedLock:
    """Mutual exclusion per string key; idle keys are forgotten."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _LockEntry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# shared by every engine in this process unless one is passed explicitly
DEFAULT_KEYED_LOCK = KeyedLock()


def plan_upsert(candidate: PollCandidate, existing: CleanPoll | None) -> UpsertOutcome:
    """Decide what storing ``candidate`` would do, without touching storage."""

    if existing is None:
        return UpsertOutcome.INSERTED
    if existing.matches(candidate):
        return UpsertOutcome.UNCHANGED
    return UpsertOutcome.UPDATED


@dataclass(frozen=True, slots=True)
class UpsertResult:
    outcome: UpsertOutcome
    poll_id: int | None


@dataclass(slots=True)
class UpsertEngine:
    """Insert, replace or skip one candidate inside its own transaction.

    Upserts for the same identity key are serialized by ``locks`` within the
    process. Across processes the unique identity column decides the winner;
    the loser sees ``IdentityConflict`` and re-evaluates against the stored row.
    """

    unit_of_work_factory: Callable[[], IngestUnitOfWork]
    locks: KeyedLock = field(default_factory=lambda: DEFAULT_KEYED_LOCK)
    max_conflict_retries: int = 1

    def upsert(self, candidate: PollCandidate) -> UpsertResult:
        token = identity_token(candidate.identity_key)
        with self.locks.hold(token):
            attempt = 0
            while True:
                try:
                    return self._upsert_once(candidate, token)
                except IdentityConflict as exc:
                    if attempt >= self.max_conflict_retries:
                        raise UpsertFailed(token, str(exc)) from exc
                    attempt += 1
                    log.info("Identity conflict for %s, re-evaluating (attempt %d)", token, attempt)
                except StorageError as exc:
                    raise UpsertFailed(token, str(exc)) from exc

    def preview(self, candidate: PollCandidate) -> tuple[UpsertOutcome, CleanPoll | None]:
        """Return the planned outcome and the stored poll it was compared to."""

        token = identity_token(candidate.identity_key)
        with self.unit_of_work_factory() as uow:
            existing = uow.repositories.clean_polls.get_by_identity(token)
            return plan_upsert(candidate, existing), existing

    def _upsert_once(self, candidate: PollCandidate, token: str) -> UpsertResult:
        with self.unit_of_work_factory() as uow:
            polls = uow.repositories.clean_polls
            existing = polls.get_by_identity(token)
            outcome = plan_upsert(candidate, existing)

            match outcome:
                case UpsertOutcome.UNCHANGED:
                    assert existing is not None
                    return UpsertResult(outcome, existing.id)
                case UpsertOutcome.INSERTED:
                    poll = CleanPoll.from_candidate(candidate)
                    polls.add(poll)
                case UpsertOutcome.UPDATED:
                    assert existing is not None
                    poll = existing
                    poll.apply(candidate)
                    polls.replace_results(poll, candidate.results)

            uow.commit()
            log.debug("Upsert %s for %s (poll %s)", outcome, token, poll.id)
            return UpsertResult(outcome, poll.id)


class UpsertPhase(PipelinePhase):
    """Hand the resolved candidate to the upsert engine."""

    name: str = "upsert"

    def run(self, record: RecordContext, *, context: PipelineContext) -> None:
        engine = context.upsert_engine
        if engine is None:
            raise RuntimeError("UpsertPhase requires an upsert engine on the pipeline context")
        candidate = record.candidate
        if candidate is None:
            raise RuntimeError("Resolution must run before the upsert phase")

        try:
            result = engine.upsert(candidate)
        except UpsertFailed as exc:
            log.exception("Raw poll %s: upsert failed", record.raw_id)
            record.transition(RecordState.UPSERT_FAILED)
            record.rejection = exc.reason
            return

        record.outcome = result.outcome
        record.clean_poll_id = result.poll_id
        record.transition(RecordState.UPSERTED)
