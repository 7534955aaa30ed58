"""
Business Errors

Every failure that crosses a public boundary is a DendriteError carrying an
ErrorCode. The facade turns these into ApiResponse envelopes; nothing else
should leak a traceback to callers.

Code prefixes:
    E - employee / profile data
    V - evaluation validation
    Q - queue items
    A - AI capability
    S - search
    X - system
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Stable (code, message) pairs exposed in API envelopes."""

    EMPLOYEE_NOT_FOUND = ("E001", "Employee not found")
    EMPLOYEE_NO_DATA = ("E002", "Employee has no skill history")

    EVALUATION_EMPTY = ("V001", "Evaluation content is empty")
    EVALUATION_TOO_SHORT = ("V002", "Evaluation content is too short")
    EVALUATION_TOO_LONG = ("V003", "Evaluation content is too long")

    QUEUE_ITEM_MALFORMED = ("Q001", "Unrecognized queue item")

    AI_CALL_FAILED = ("A001", "AI service call failed")
    AI_RESPONSE_INVALID = ("A002", "AI response could not be parsed")

    SEARCH_FAILED = ("S001", "Search failed")
    SEARCH_NO_RESULTS = ("S002", "No matching talent found")

    INTERNAL_ERROR = ("X001", "Internal error")
    INVALID_PARAMETER = ("X002", "Invalid parameter")
    CONCURRENT_UPDATE = ("X003", "Concurrent update could not be applied")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


class DendriteError(Exception):
    """
    Named business error.

    Args:
        error_code: Which ErrorCode this failure maps to
        detail: Optional free-text detail appended to the code's message
    """

    def __init__(self, error_code: ErrorCode, detail: str | None = None) -> None:
        self.error_code = error_code
        self.detail = detail
        message = error_code.message
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.error_code.code
