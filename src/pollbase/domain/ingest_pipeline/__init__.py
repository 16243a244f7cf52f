"""Raw-to-clean cleaning pipeline.

Each raw record travels through explicit, testable phases (normalization,
resolution, upsert) composed by ``IngestionPipeline``. Phases communicate
through a per-record ``RecordContext`` and a batch-wide ``PipelineContext``
holding the immutable reference snapshot.
"""

from __future__ import annotations

from .context import BatchSummary, FieldFailure, NormalizedFields, PipelineContext, RecordContext
from .deduplication import KeyedLock, UpsertEngine, UpsertPhase, UpsertResult, plan_upsert
from .ingest_ports import IngestRepositories, IngestUnitOfWork
from .normalization import (
    NormalizationPhase,
    PartyResultsParse,
    RawPartyResult,
    parse_date,
    parse_party_results,
    parse_respondents,
    parse_survey_period,
)
from .orchestrator import IngestionPipeline, PipelinePhase
from .resolution import AliasTable, EntityResolver, ResolutionPhase, normalize_alias
from .runner import InspectionReport, default_pipeline, inspect_record, load_snapshot, run_batch
from .state import advance, can_transition

__all__ = [
    "AliasTable",
    "BatchSummary",
    "EntityResolver",
    "FieldFailure",
    "IngestRepositories",
    "IngestUnitOfWork",
    "IngestionPipeline",
    "InspectionReport",
    "KeyedLock",
    "NormalizationPhase",
    "NormalizedFields",
    "PartyResultsParse",
    "PipelineContext",
    "PipelinePhase",
    "RawPartyResult",
    "RecordContext",
    "ResolutionPhase",
    "UpsertEngine",
    "UpsertPhase",
    "UpsertResult",
    "advance",
    "can_transition",
    "default_pipeline",
    "inspect_record",
    "load_snapshot",
    "normalize_alias",
    "parse_date",
    "parse_party_results",
    "parse_respondents",
    "parse_survey_period",
    "plan_upsert",
    "run_batch",
]
