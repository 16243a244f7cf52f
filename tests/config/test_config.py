from __future__ import annotations

import logging

import pytest

from pollbase.config import (
    ConfigurationError,
    InvalidConfigurationValue,
    MissingConfigurationError,
    PipelineConfig,
    get_pipeline_config,
    optional_bool_env,
    optional_float_env,
    optional_int_env,
    require_env_var,
    require_env_vars,
    resolve_log_level,
)
from pollbase.domain.model import ReferenceKind


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_names_every_missing_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRESENT_VAR", "x")
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.delenv("MISSING_A", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "PRESENT_VAR", "MISSING_A"])

    assert exc.value.names == ["MISSING_A", "MISSING_B"]
    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


def test_optional_int_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("POLLBASE_TEST_INT", raising=False)
    assert optional_int_env("POLLBASE_TEST_INT", 7) == 7

    monkeypatch.setenv("POLLBASE_TEST_INT", " 3 ")
    assert optional_int_env("POLLBASE_TEST_INT", 7, minimum=1) == 3

    monkeypatch.setenv("POLLBASE_TEST_INT", "0")
    with pytest.raises(ConfigurationError):
        optional_int_env("POLLBASE_TEST_INT", 7, minimum=1)

    monkeypatch.setenv("POLLBASE_TEST_INT", "many")
    with pytest.raises(InvalidConfigurationValue) as exc:
        optional_int_env("POLLBASE_TEST_INT", 7)
    assert exc.value.name == "POLLBASE_TEST_INT"
    assert exc.value.value == "many"


def test_optional_float_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POLLBASE_TEST_FLOAT", "2.5")
    assert optional_float_env("POLLBASE_TEST_FLOAT", 1.0) == 2.5

    monkeypatch.setenv("POLLBASE_TEST_FLOAT", "-1")
    with pytest.raises(ConfigurationError):
        optional_float_env("POLLBASE_TEST_FLOAT", 1.0, minimum=0.0)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), ("Yes", True), ("on", True), ("0", False), ("FALSE", False), ("off", False)],
)
def test_optional_bool_env_accepts_common_spellings(
    monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool
) -> None:
    monkeypatch.setenv("POLLBASE_TEST_BOOL", raw)

    assert optional_bool_env("POLLBASE_TEST_BOOL") is expected


def test_optional_bool_env_rejects_other_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("POLLBASE_TEST_BOOL", raising=False)
    assert optional_bool_env("POLLBASE_TEST_BOOL", default=True) is True

    monkeypatch.setenv("POLLBASE_TEST_BOOL", "maybe")
    with pytest.raises(InvalidConfigurationValue):
        optional_bool_env("POLLBASE_TEST_BOOL")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, logging.INFO),
        ("", logging.INFO),
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        ("15", 15),
    ],
)
def test_resolve_log_level(raw: str | None, expected: int) -> None:
    assert resolve_log_level(raw) == expected


def test_resolve_log_level_rejects_unknown_names() -> None:
    with pytest.raises(InvalidConfigurationValue, match="POLLBASE_LOG_LEVEL"):
        resolve_log_level("chatty")


def test_pipeline_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "POLLBASE_BATCH_LIMIT",
        "POLLBASE_WORKERS",
        "POLLBASE_MIN_CONTAINMENT_LENGTH",
        "POLLBASE_BLOCKING_ENTITIES",
    ):
        monkeypatch.delenv(name, raising=False)

    assert get_pipeline_config() == PipelineConfig()
    assert PipelineConfig().blocking_entities == frozenset({ReferenceKind.INSTITUTE})


def test_pipeline_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POLLBASE_BATCH_LIMIT", "50")
    monkeypatch.setenv("POLLBASE_WORKERS", "4")
    monkeypatch.setenv("POLLBASE_MIN_CONTAINMENT_LENGTH", "3")
    monkeypatch.setenv("POLLBASE_BLOCKING_ENTITIES", "Institute, party,")

    config = get_pipeline_config()

    assert config.batch_limit == 50
    assert config.workers == 4
    assert config.min_containment_length == 3
    assert config.blocking_entities == frozenset({ReferenceKind.INSTITUTE, ReferenceKind.PARTY})


def test_blank_blocking_entities_disable_blocking(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POLLBASE_BLOCKING_ENTITIES", "")

    assert get_pipeline_config().blocking_entities == frozenset()


def test_unknown_blocking_entity_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POLLBASE_BLOCKING_ENTITIES", "institute,pollster")

    with pytest.raises(ConfigurationError, match="pollster"):
        get_pipeline_config()


def test_worker_count_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POLLBASE_WORKERS", "0")

    with pytest.raises(ConfigurationError):
        get_pipeline_config()
