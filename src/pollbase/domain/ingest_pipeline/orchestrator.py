"""Phase-based orchestrator for the pollbase cleaning pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from pollbase.domain.errors import UnparsableRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .context import PipelineContext, RecordContext


class PipelinePhase(Protocol):
    """Contract implemented by each cleaning phase."""

    name: str

    def run(self, record: RecordContext, *, context: PipelineContext) -> None: ...


@dataclass(slots=True)
class IngestionPipeline:
    """Compose and execute the ordered pipeline phases for one record.

    A phase that moves the record into a terminal state ends the run; later
    phases never see rejected records. ``UnparsableRecord`` raised by a phase
    rejects the record.
    """

    phases: Sequence[PipelinePhase] = field(default_factory=tuple)

    def with_phase(self, phase: PipelinePhase) -> IngestionPipeline:
        """Return a new pipeline appending ``phase`` at the end."""

        return IngestionPipeline(phases=(*self.phases, phase))

    def extend(self, phases: Iterable[PipelinePhase]) -> IngestionPipeline:
        """Return a new pipeline with the provided ``phases`` concatenated."""

        return IngestionPipeline(phases=(*self.phases, *tuple(phases)))

    def run(self, record: RecordContext, *, context: PipelineContext) -> RecordContext:
        """Execute the configured phases in-order against ``record``."""

        for phase in self.phases:
            if record.is_terminal:
                break
            try:
                phase.run(record, context=context)
            except UnparsableRecord as exc:
                record.reject(exc.reason)
        return record
