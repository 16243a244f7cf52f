"""Pydantic model for one raw poll line of a JSON Lines import file."""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import cast

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from pollbase.domain.model import RawPoll


def _as_text(value: object) -> object:
    """Keep raw values textual; blanks become ``None``."""

    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return str(value)
    return value


class RawPollPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    publish_date_text: str | None = Field(
        default=None, validation_alias=AliasChoices("publish_date_text", "publish_date", "date")
    )
    survey_period_text: str | None = Field(
        default=None, validation_alias=AliasChoices("survey_period_text", "survey_period")
    )
    respondents_text: str | None = Field(
        default=None, validation_alias=AliasChoices("respondents_text", "respondents")
    )
    party_results_text: str | None = Field(
        default=None, validation_alias=AliasChoices("party_results_text", "party_results", "results")
    )
    institute_name_text: str | None = Field(
        default=None, validation_alias=AliasChoices("institute_name_text", "institute")
    )
    provider_name_text: str | None = Field(
        default=None, validation_alias=AliasChoices("provider_name_text", "provider")
    )
    scope_text: str | None = Field(
        default=None, validation_alias=AliasChoices("scope_text", "scope")
    )
    election_ref_text: str | None = Field(
        default=None, validation_alias=AliasChoices("election_ref_text", "election")
    )
    method_ref_text: str | None = Field(
        default=None, validation_alias=AliasChoices("method_ref_text", "method")
    )
    source_url: str | None = None
    retrieved_at: datetime | None = None

    @field_validator(
        "publish_date_text",
        "survey_period_text",
        "respondents_text",
        "institute_name_text",
        "provider_name_text",
        "scope_text",
        "election_ref_text",
        "method_ref_text",
        "source_url",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        return _as_text(value)

    @field_validator("party_results_text", mode="before")
    @classmethod
    def _coerce_results(cls, value: object) -> object:
        # scrapers sometimes hand over the decoded mapping instead of the blob
        if isinstance(value, Mapping):
            return json.dumps(dict(cast(Mapping[str, object], value)), ensure_ascii=False)
        return _as_text(value)

    def to_domain(self) -> RawPoll:
        raw = RawPoll(
            publish_date_text=self.publish_date_text,
            survey_period_text=self.survey_period_text,
            respondents_text=self.respondents_text,
            party_results_text=self.party_results_text,
            institute_name_text=self.institute_name_text,
            provider_name_text=self.provider_name_text,
            scope_text=self.scope_text,
            election_ref_text=self.election_ref_text,
            method_ref_text=self.method_ref_text,
            source_url=self.source_url,
        )
        if self.retrieved_at is not None:
            retrieved = self.retrieved_at
            raw.retrieved_at = retrieved if retrieved.tzinfo else retrieved.replace(tzinfo=UTC)
        return raw
