"""Field normalizers and the normalization phase.

Every raw field has a closed, ordered tuple of tagged parse strategies. The
first strategy whose pattern matches the whole text decides the result; if it
matches but yields an impossible value, the field fails instead of falling
through to a looser pattern.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Final

from pollbase.domain.errors import (
    FieldError,
    MalformedDate,
    MalformedPartyResult,
    MalformedRespondents,
    OutOfRangePercentage,
    UnparsableRecord,
)
from pollbase.domain.model import DateRange, MethodHint, RecordState, RespondentCount

from .orchestrator import PipelinePhase

if TYPE_CHECKING:
    from .context import PipelineContext, RecordContext


@dataclass(frozen=True, slots=True)
class ParseStrategy[T]:
    """One named pattern and the builder turning its match into a value."""

    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], T]

    def attempt(self, text: str) -> T | None:
        match = self.pattern.fullmatch(text)
        if match is None:
            return None
        return self.build(match)


# Dates -------------------------------------------------------------------------

_DASH: Final[str] = r"\s*[-‐‑‒–—−]\s*"
_DAY: Final[str] = r"(\d{1,2})"
_MONTH: Final[str] = r"(\d{1,2})"
_YEAR: Final[str] = r"(\d{4})"


def _calendar_date(year: int, month: int, day: int, raw: str) -> date:
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise MalformedDate(f"Impossible calendar date in {raw!r}: {exc}", raw_text=raw) from exc


def _ordered_range(start: date, end: date, raw: str) -> DateRange:
    if start > end:
        raise MalformedDate(f"Survey start {start} is after end {end} in {raw!r}", raw_text=raw)
    return DateRange(start=start, end=end)


def _build_dotted(match: re.Match[str]) -> date:
    day, month, year = (int(value) for value in match.groups())
    return _calendar_date(year, month, day, match.string)


def _build_iso(match: re.Match[str]) -> date:
    year, month, day = (int(value) for value in match.groups())
    return _calendar_date(year, month, day, match.string)


DATE_STRATEGIES: Final[tuple[ParseStrategy[date], ...]] = (
    ParseStrategy("dotted", re.compile(rf"{_DAY}\.{_MONTH}\.{_YEAR}"), _build_dotted),
    ParseStrategy("iso", re.compile(rf"{_YEAR}-{_MONTH}-{_DAY}"), _build_iso),
)


def parse_date(text: str | None) -> date:
    """Parse a single calendar date (``DD.MM.YYYY`` or ``YYYY-MM-DD``)."""

    cleaned = (text or "").strip()
    if not cleaned:
        raise MalformedDate("Empty date", raw_text=text)
    for strategy in DATE_STRATEGIES:
        result = strategy.attempt(cleaned)
        if result is not None:
            return result
    raise MalformedDate(f"No date pattern matched {cleaned!r}", raw_text=text)


def _build_full_range(match: re.Match[str]) -> DateRange:
    sd, sm, sy, ed, em, ey = (int(value) for value in match.groups())
    start = _calendar_date(sy, sm, sd, match.string)
    end = _calendar_date(ey, em, ed, match.string)
    return _ordered_range(start, end, match.string)


def _build_day_month_range(match: re.Match[str]) -> DateRange:
    sd, sm, ed, em, ey = (int(value) for value in match.groups())
    end = _calendar_date(ey, em, ed, match.string)
    # start month after end month: the survey began in the previous year
    start_year = ey - 1 if sm > em else ey
    start = _calendar_date(start_year, sm, sd, match.string)
    return _ordered_range(start, end, match.string)


def _build_day_range(match: re.Match[str]) -> DateRange:
    sd, ed, em, ey = (int(value) for value in match.groups())
    end = _calendar_date(ey, em, ed, match.string)
    start_month, start_year = em, ey
    if sd > ed:
        start_month -= 1
        if start_month == 0:
            start_month, start_year = 12, ey - 1
    start = _calendar_date(start_year, start_month, sd, match.string)
    return _ordered_range(start, end, match.string)


def _build_single_period(match: re.Match[str]) -> DateRange:
    day = _build_dotted(match)
    return DateRange(start=day, end=day)


SURVEY_PERIOD_STRATEGIES: Final[tuple[ParseStrategy[DateRange], ...]] = (
    ParseStrategy(
        "full_range",
        re.compile(rf"{_DAY}\.{_MONTH}\.{_YEAR}{_DASH}{_DAY}\.{_MONTH}\.{_YEAR}"),
        _build_full_range,
    ),
    ParseStrategy(
        "day_month_range",
        re.compile(rf"{_DAY}\.{_MONTH}\.?{_DASH}{_DAY}\.{_MONTH}\.{_YEAR}"),
        _build_day_month_range,
    ),
    ParseStrategy(
        "day_range",
        re.compile(rf"{_DAY}\.?{_DASH}{_DAY}\.{_MONTH}\.{_YEAR}"),
        _build_day_range,
    ),
    ParseStrategy("single", re.compile(rf"{_DAY}\.{_MONTH}\.{_YEAR}"), _build_single_period),
)


def parse_survey_period(text: str | None) -> DateRange:
    """Parse a survey period into an inclusive ``DateRange``.

    Only the end date carries the year in the abbreviated forms. The start
    inherits the end's month and year; a start day larger than the end day
    moves the start into the previous month (and year, for January), and a
    start month later than the end month moves the start into the previous
    year.
    """

    cleaned = (text or "").strip()
    if not cleaned:
        raise MalformedDate("Empty survey period", raw_text=text)
    for strategy in SURVEY_PERIOD_STRATEGIES:
        result = strategy.attempt(cleaned)
        if result is not None:
            return result
    raise MalformedDate(f"No survey period pattern matched {cleaned!r}", raw_text=text)


# Respondents -------------------------------------------------------------------

METHOD_HINT_TOKENS: Final[dict[frozenset[str], MethodHint]] = {
    frozenset({"O"}): MethodHint.ONLINE,
    frozenset({"T"}): MethodHint.TELEPHONE,
    frozenset({"T", "O"}): MethodHint.TELEPHONE_ONLINE,
    frozenset({"TO"}): MethodHint.TELEPHONE_ONLINE,
}

_PREFIX_SEPARATORS = re.compile(r"[\s•·+/&]+")
# thousands groups take exactly three digits after one separator
_NUMBER = re.compile(r"\d{1,3}(?:[.,'\u00a0\u202f ]\d{3})+(?!\d)|\d+")
_NON_DIGIT = re.compile(r"\D")


def _method_hint(prefix: str) -> MethodHint | None:
    tokens = frozenset(token for token in _PREFIX_SEPARATORS.split(prefix.upper()) if token)
    if not tokens:
        return None
    return METHOD_HINT_TOKENS.get(tokens)


def parse_respondents(text: str | None) -> RespondentCount:
    """Parse a respondent count such as ``"O • 1005"`` or ``"ca. 1.000"``.

    The text before the first digit is a method hint when it consists of known
    tokens and noise otherwise. Thousands separators are ignored; the number ends
    at the first separator not followed by a group of three digits.
    """

    cleaned = (text or "").strip()
    first_digit = re.search(r"\d", cleaned)
    if first_digit is None:
        raise MalformedRespondents(f"No digits in respondents {cleaned!r}", raw_text=text)

    number = _NUMBER.match(cleaned, first_digit.start())
    digits = _NON_DIGIT.sub("", number.group() if number else "")
    count = int(digits)
    if count <= 0:
        raise MalformedRespondents(f"Respondent count must be positive in {cleaned!r}", raw_text=text)

    return RespondentCount(count=count, method_hint=_method_hint(cleaned[: first_digit.start()]))


# Party results -----------------------------------------------------------------

_NOT_POLLED: Final[frozenset[str]] = frozenset({"", "-", "–", "—", "?", "n.a.", "k.a."})
_PERCENTAGE = re.compile(r"([-+]?\d+(?:[.,]\d+)?)\s*%?")
_PAIR = re.compile(
    r"(?P<name>.+?)\s*[:=]?\s*(?P<value>[-+]?\d+(?:[.,]\d+)?|[-–—?])\s*%?"
)
_EMPTY_PAIR = re.compile(r"(?P<name>.+?)\s*[:=]\s*")
_PAIR_SEPARATORS = re.compile(r"[;|\n]+")


@dataclass(frozen=True, slots=True)
class RawPartyResult:
    """A party name as published and its parsed percentage."""

    name: str
    percentage: float
    out_of_range: bool = False


@dataclass(frozen=True, slots=True)
class PartyResultsParse:
    """Decoded pairs plus the per-pair failures found while decoding."""

    strategy: str
    pairs: tuple[RawPartyResult, ...] = ()
    failures: tuple[FieldError, ...] = ()


def _parse_percentage(value: str) -> float | None:
    """Return the numeric value, ``None`` for a "not polled" placeholder."""

    cleaned = value.strip()
    if cleaned.lower() in _NOT_POLLED:
        return None
    match = _PERCENTAGE.fullmatch(cleaned)
    if match is None:
        raise ValueError(f"Not a percentage: {value!r}")
    return float(match.group(1).replace(",", "."))


class _PairCollector:
    def __init__(self) -> None:
        self.pairs: list[RawPartyResult] = []
        self.failures: list[FieldError] = []

    def add(self, name: str, value: str) -> None:
        name = name.strip()
        try:
            percentage = _parse_percentage(value)
        except ValueError:
            self.failures.append(
                MalformedPartyResult(f"Cannot read percentage {value!r} for {name!r}", raw_text=name)
            )
            return
        if percentage is None:
            return
        out_of_range = not 0.0 <= percentage <= 100.0
        if out_of_range:
            self.failures.append(OutOfRangePercentage(name, percentage))
        self.pairs.append(RawPartyResult(name=name, percentage=percentage, out_of_range=out_of_range))

    def result(self, strategy: str) -> PartyResultsParse:
        return PartyResultsParse(
            strategy=strategy, pairs=tuple(self.pairs), failures=tuple(self.failures)
        )


def _parse_json_object(text: str) -> PartyResultsParse | None:
    if not text.startswith("{"):
        return None
    try:
        payload: object = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedPartyResult(f"Invalid JSON party results: {exc}", raw_text=text) from exc
    if not isinstance(payload, dict):
        raise MalformedPartyResult("JSON party results must be an object", raw_text=text)

    collector = _PairCollector()
    for name, value in payload.items():  # pyright: ignore[reportUnknownVariableType]
        if value is None:
            continue
        collector.add(str(name), str(value))  # pyright: ignore[reportUnknownArgumentType]
    return collector.result("json_object")


def _parse_delimited_pairs(text: str) -> PartyResultsParse | None:
    collector = _PairCollector()
    for chunk in _PAIR_SEPARATORS.split(text):
        entry = chunk.strip()
        if not entry:
            continue
        if _EMPTY_PAIR.fullmatch(entry):
            continue
        match = _PAIR.fullmatch(entry)
        if match is None:
            collector.failures.append(
                MalformedPartyResult(f"Cannot decode party result {entry!r}", raw_text=entry)
            )
            continue
        collector.add(match.group("name"), match.group("value"))
    return collector.result("delimited_pairs")


PARTY_RESULT_STRATEGIES: Final[tuple[tuple[str, Callable[[str], PartyResultsParse | None]], ...]] = (
    ("json_object", _parse_json_object),
    ("delimited_pairs", _parse_delimited_pairs),
)


def parse_party_results(text: str | None) -> PartyResultsParse:
    """Decode a party-result blob into ``(name, percentage)`` pairs.

    Out-of-range percentages are kept and flagged; whether they enter the
    clean poll is decided by the caller.
    """

    cleaned = (text or "").strip()
    if not cleaned:
        raise MalformedPartyResult("Empty party results", raw_text=text)
    for _name, strategy in PARTY_RESULT_STRATEGIES:
        result = strategy(cleaned)
        if result is not None:
            if not result.pairs and result.failures:
                raise MalformedPartyResult(
                    f"No party result could be decoded from {cleaned!r}", raw_text=text
                )
            return result
    raise MalformedPartyResult(f"No party result pattern matched {cleaned!r}", raw_text=text)


# Phase -------------------------------------------------------------------------


def _is_blank(text: str | None) -> bool:
    return text is None or not text.strip()


class NormalizationPhase(PipelinePhase):
    """Normalize every field of the raw record independently.

    A missing or unparsable publish date rejects the record, since the
    publish date is part of the identity key. All other failures leave the
    field empty.
    """

    name: str = "normalization"

    def run(self, record: RecordContext, *, context: PipelineContext) -> None:
        _ = context
        record.transition(RecordState.NORMALIZING)
        raw = record.raw
        fields = record.fields

        try:
            fields.publish_date = parse_date(raw.publish_date_text)
        except MalformedDate as exc:
            record.record_failure("publish_date", exc)

        if not _is_blank(raw.survey_period_text):
            try:
                fields.survey_period = parse_survey_period(raw.survey_period_text)
            except MalformedDate as exc:
                record.record_failure("survey_period", exc)

        if not _is_blank(raw.respondents_text):
            try:
                fields.respondents = parse_respondents(raw.respondents_text)
            except MalformedRespondents as exc:
                record.record_failure("respondents", exc)

        if not _is_blank(raw.party_results_text):
            try:
                fields.party_results = parse_party_results(raw.party_results_text)
            except MalformedPartyResult as exc:
                record.record_failure("party_results", exc)
            else:
                for failure in fields.party_results.failures:
                    record.record_failure("party_results", failure)

        if fields.publish_date is None:
            raise UnparsableRecord(record.raw_id, "publish_date could not be parsed")
        record.transition(RecordState.RESOLVING)
