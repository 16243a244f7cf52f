"""Typed readers for ``POLLBASE_*`` environment variables."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidConfigurationValue, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _env(name: str) -> str | None:
    """Return the stripped value, treating blank as unset."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return every named variable, or raise naming all that are missing."""

    values = {name: _env(name) for name in names}
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise MissingConfigurationError(missing)
    return {name: value for name, value in values.items() if value is not None}


def require_env_var(name: str) -> str:
    return require_env_vars([name])[name]


def optional_int_env(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidConfigurationValue(name, raw, "an integer") from exc
    if minimum is not None and value < minimum:
        raise InvalidConfigurationValue(name, raw, f"an integer >= {minimum}")
    return value


def optional_float_env(name: str, default: float, *, minimum: float | None = None) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise InvalidConfigurationValue(name, raw, "a number") from exc
    if minimum is not None and value < minimum:
        raise InvalidConfigurationValue(name, raw, f"a number >= {minimum}")
    return value


def optional_bool_env(name: str, *, default: bool = False) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise InvalidConfigurationValue(name, raw, "a boolean (1/0, true/false, yes/no, on/off)")
