"""
Error taxonomy for record concerns.

Declarations fail fast with ConfigurationError. Nothing else is raised by
the concerns themselves: failed writes come back as ``False`` and hook
exceptions propagate untouched.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable error codes. Never reuse a retired code."""

    # Configuration
    CONFIG_FIELD_MISSING = "CFG_001"
    CONFIG_INVALID_OPTION = "CFG_002"

    # Persistence
    PERSIST_WRITE_REJECTED = "PER_001"


class ConcernError(Exception):
    """Base class for all record concern errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "detail": self.detail,
            }
        }


class ConfigurationError(ConcernError):
    """Raised at declaration time when a concern is misconfigured."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_FIELD_MISSING,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(code=code, message=message, detail=detail)


class MissingFieldError(ConfigurationError):
    def __init__(self, concern: str, model: str, field: str) -> None:
        super().__init__(
            message=f"{concern}: field '{field}' does not exist on {model}",
            detail={"concern": concern, "model": model, "field": field},
        )
