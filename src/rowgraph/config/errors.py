"""Errors raised while reading rowgraph settings."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A setting from the environment or the command line has an unusable value."""

    def __init__(self, message: str, *, setting: str | None = None) -> None:
        self.setting = setting
        super().__init__(message)


class MissingConfigurationError(ConfigurationError):
    """A required setting was neither passed as an option nor set in the environment."""

    def __init__(self, setting: str, *, hint: str | None = None) -> None:
        message = f"{setting} is not set" if hint is None else f"{setting} is not set ({hint})"
        super().__init__(message, setting=setting)
