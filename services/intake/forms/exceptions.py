"""Errors raised by the form configuration engine."""
from __future__ import annotations

from typing import List


class ConfigurationError(Exception):
    """Base class for configuration failures surfaced to callers."""


class ConfigurationValidationError(ConfigurationError):
    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class ConfigurationNotFound(ConfigurationError):
    def __init__(self, config_id: str) -> None:
        super().__init__(f"Form configuration not found: {config_id}")
        self.config_id = config_id


class ConfigurationStoreError(ConfigurationError):
    """A write failed and the previous activation is still in place."""


class ActivationInconsistency(ConfigurationError):
    """No configuration was left active after a failed activation."""

    def __init__(self, message: str, recovered: bool) -> None:
        super().__init__(message)
        self.recovered = recovered


class PersonalizationFailure(ConfigurationError):
    """Regenerating a personalized configuration failed."""


class FieldNotFound(ConfigurationError):
    def __init__(self, field_id: str) -> None:
        super().__init__(f"Field not found: {field_id}")
        self.field_id = field_id
