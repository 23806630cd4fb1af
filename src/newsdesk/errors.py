"""Request-path error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class NewsdeskError(Exception):
    """Base error surfaced to API and CLI callers."""

    message: str
    code: str = "error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ValidationError(NewsdeskError):
    """Mutation or query input was rejected; nothing was written."""

    code: str = "validation_error"


@dataclass(slots=True)
class NotFoundError(NewsdeskError):
    """Referenced source, item, folder or tag does not exist."""

    code: str = "not_found"


@dataclass(slots=True)
class FeatureDisabledError(NewsdeskError):
    """Operation is switched off by server configuration."""

    code: str = "feature_disabled"
