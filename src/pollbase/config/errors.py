"""Errors raised while reading configuration from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A configuration value is present but unusable."""


class MissingConfigurationError(ConfigurationError):
    """Required environment variables are unset or blank."""

    def __init__(self, names: list[str]) -> None:
        super().__init__(f"Missing configuration for: {', '.join(sorted(names))}")
        self.names = sorted(names)


class InvalidConfigurationValue(ConfigurationError):
    """An environment variable could not be interpreted."""

    def __init__(self, name: str, value: str, expected: str) -> None:
        super().__init__(f"{name} must be {expected}, got {value!r}")
        self.name = name
        self.value = value
        self.expected = expected
