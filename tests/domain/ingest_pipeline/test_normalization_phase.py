from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

import pytest

from pollbase.domain.errors import (
    MalformedDate,
    MalformedPartyResult,
    MalformedRespondents,
    UnparsableRecord,
)
from pollbase.domain.ingest_pipeline import (
    IngestionPipeline,
    NormalizationPhase,
    RecordContext,
    parse_date,
    parse_party_results,
    parse_respondents,
    parse_survey_period,
)
from pollbase.domain.model import DateRange, MethodHint, RecordState
from tests.helpers.raw_polls import make_raw_poll

if TYPE_CHECKING:
    from pollbase.domain.ingest_pipeline import PipelineContext


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("24.06.2024", date(2024, 6, 24)),
        ("4.6.2024", date(2024, 6, 4)),
        ("2024-06-24", date(2024, 6, 24)),
        ("  24.06.2024 ", date(2024, 6, 24)),
    ],
)
def test_parse_date_accepts_known_formats(text: str, expected: date) -> None:
    assert parse_date(text) == expected


@pytest.mark.parametrize("text", ["31.02.2024", "24/06/2024", "June 24", "", None])
def test_parse_date_rejects_malformed_text(text: str | None) -> None:
    with pytest.raises(MalformedDate):
        parse_date(text)


@pytest.mark.parametrize(
    ("text", "start", "end"),
    [
        ("24.06.-26.06.2024", date(2024, 6, 24), date(2024, 6, 26)),
        ("01.–05.03.2024", date(2024, 3, 1), date(2024, 3, 5)),
        ("1.-5.3.2024", date(2024, 3, 1), date(2024, 3, 5)),
        ("01.01.2024 - 05.01.2024", date(2024, 1, 1), date(2024, 1, 5)),
        ("24.06.2024", date(2024, 6, 24), date(2024, 6, 24)),
    ],
)
def test_parse_survey_period_formats(text: str, start: date, end: date) -> None:
    assert parse_survey_period(text) == DateRange(start=start, end=end)


def test_survey_period_crossing_the_year_boundary_by_month() -> None:
    period = parse_survey_period("28.12.-03.01.2024")

    assert period == DateRange(start=date(2023, 12, 28), end=date(2024, 1, 3))


def test_survey_period_day_range_wraps_into_previous_month() -> None:
    assert parse_survey_period("28.–03.03.2024") == DateRange(
        start=date(2024, 2, 28), end=date(2024, 3, 3)
    )
    assert parse_survey_period("30.–02.01.2024") == DateRange(
        start=date(2023, 12, 30), end=date(2024, 1, 2)
    )


@pytest.mark.parametrize(
    "text",
    [
        "31.–02.03.2024",  # 31 February
        "26.06.2024-24.06.2024",  # start after end
        "KW 25",
        "   ",
    ],
)
def test_parse_survey_period_rejects_impossible_periods(text: str) -> None:
    with pytest.raises(MalformedDate):
        parse_survey_period(text)


@pytest.mark.parametrize(
    ("text", "count", "hint"),
    [
        ("O • 1005", 1005, MethodHint.ONLINE),
        ("T 1500", 1500, MethodHint.TELEPHONE),
        ("T+O 1.200", 1200, MethodHint.TELEPHONE_ONLINE),
        ("ca. 1000", 1000, None),
        ("1.005", 1005, None),
        ("2503 (online)", 2503, None),
        ("1 005", 1005, None),
        ("1\u00a0200", 1200, None),
        ("1005 12", 1005, None),
        ("O 1.005 / 12.06.", 1005, MethodHint.ONLINE),
        ("12.345.678", 12345678, None),
    ],
)
def test_parse_respondents(text: str, count: int, hint: MethodHint | None) -> None:
    respondents = parse_respondents(text)

    assert respondents.count == count
    assert respondents.method_hint == hint


@pytest.mark.parametrize("text", ["k.A.", "0", "", None])
def test_parse_respondents_rejects_missing_or_zero_counts(text: str | None) -> None:
    with pytest.raises(MalformedRespondents):
        parse_respondents(text)


def test_parse_party_results_delimited_pairs() -> None:
    parsed = parse_party_results("CDU/CSU: 30,5 %; SPD: 15 % | AfD 17\nFDP: -")

    assert parsed.strategy == "delimited_pairs"
    assert [(pair.name, pair.percentage) for pair in parsed.pairs] == [
        ("CDU/CSU", 30.5),
        ("SPD", 15.0),
        ("AfD", 17.0),
    ]
    assert parsed.failures == ()


def test_parse_party_results_json_object() -> None:
    parsed = parse_party_results('{"CDU/CSU": 30.5, "SPD": "15,0", "FDP": "-", "BSW": null}')

    assert parsed.strategy == "json_object"
    assert [(pair.name, pair.percentage) for pair in parsed.pairs] == [
        ("CDU/CSU", 30.5),
        ("SPD", 15.0),
    ]


def test_parse_party_results_flags_out_of_range_values() -> None:
    parsed = parse_party_results("AfD: 120; SPD: 15")

    flagged = [pair.name for pair in parsed.pairs if pair.out_of_range]
    assert flagged == ["AfD"]
    assert [type(failure).__name__ for failure in parsed.failures] == ["OutOfRangePercentage"]


def test_parse_party_results_keeps_good_pairs_next_to_bad_ones() -> None:
    parsed = parse_party_results("SPD: 20; garbage")

    assert [pair.name for pair in parsed.pairs] == ["SPD"]
    assert len(parsed.failures) == 1
    assert isinstance(parsed.failures[0], MalformedPartyResult)


@pytest.mark.parametrize("text", ["", "garbage", "{not json", '["SPD", 20]'])
def test_parse_party_results_rejects_undecodable_text(text: str) -> None:
    with pytest.raises(MalformedPartyResult):
        parse_party_results(text)


def test_normalization_phase_parses_every_field(pipeline_context: PipelineContext) -> None:
    record = RecordContext(raw=make_raw_poll())

    NormalizationPhase().run(record, context=pipeline_context)

    assert record.state is RecordState.RESOLVING
    fields = record.fields
    assert fields.publish_date == date(2024, 6, 24)
    assert fields.survey_period == DateRange(start=date(2024, 6, 18), end=date(2024, 6, 24))
    assert fields.respondents is not None
    assert fields.respondents.count == 1005
    assert fields.party_results is not None
    assert len(fields.party_results.pairs) == 3
    assert record.failures == []


def test_normalization_phase_raises_without_publish_date(
    pipeline_context: PipelineContext,
) -> None:
    record = RecordContext(raw=make_raw_poll(publish_date_text="unknown"))

    with pytest.raises(UnparsableRecord):
        NormalizationPhase().run(record, context=pipeline_context)

    assert [failure.field for failure in record.failures] == ["publish_date"]


def test_pipeline_turns_unparsable_record_into_rejection(
    pipeline_context: PipelineContext,
) -> None:
    pipeline = IngestionPipeline(phases=(NormalizationPhase(),))
    record = RecordContext(raw=make_raw_poll(publish_date_text=None))

    pipeline.run(record, context=pipeline_context)

    assert record.state is RecordState.REJECTED
    assert record.rejection == "publish_date could not be parsed"
    assert [failure.field for failure in record.failures] == ["publish_date"]


def test_normalization_phase_isolates_field_failures(pipeline_context: PipelineContext) -> None:
    record = RecordContext(
        raw=make_raw_poll(
            survey_period_text="31.–02.03.2024",
            respondents_text="k.A.",
            party_results_text="SPD: 20; AfD: 140",
        )
    )

    NormalizationPhase().run(record, context=pipeline_context)

    assert record.state is RecordState.RESOLVING
    assert record.fields.survey_period is None
    assert record.fields.respondents is None
    assert record.fields.party_results is not None
    assert {failure.field: failure.error for failure in record.failures} == {
        "survey_period": "MalformedDate",
        "respondents": "MalformedRespondents",
        "party_results": "OutOfRangePercentage",
    }


def test_normalization_phase_skips_blank_optional_fields(
    pipeline_context: PipelineContext,
) -> None:
    record = RecordContext(
        raw=make_raw_poll(survey_period_text=None, respondents_text="  ", party_results_text=None)
    )

    NormalizationPhase().run(record, context=pipeline_context)

    assert record.state is RecordState.RESOLVING
    assert record.failures == []
