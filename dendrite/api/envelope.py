"""
API Response Envelope

Every public facade call returns an ApiResponse instead of raising, so
callers (CLI, HTTP adapters) see a stable success/error shape with an error
code and message and never a traceback.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from dendrite.exceptions import DendriteError, ErrorCode
from dendrite.types.records import utc_now

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """
    Uniform result wrapper.

    Attributes:
        success: Whether the call succeeded
        data: Payload on success
        error_code: ErrorCode.code on failure (e.g. "V002")
        message: Human-readable outcome
        timestamp: When the response was produced
    """

    success: bool
    data: T | None = None
    error_code: str | None = None
    message: str = "OK"
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def ok(cls, data: T | None = None, message: str = "OK") -> "ApiResponse[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error_code: ErrorCode, message: str | None = None) -> "ApiResponse[T]":
        return cls(
            success=False,
            error_code=error_code.code,
            message=message or error_code.message,
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> "ApiResponse[T]":
        if isinstance(exc, DendriteError):
            return cls.fail(exc.error_code, str(exc))
        return cls.fail(ErrorCode.INTERNAL_ERROR, f"{ErrorCode.INTERNAL_ERROR.message}: {exc}")
