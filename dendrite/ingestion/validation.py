"""
Submission validation.

Invalid evaluations are rejected synchronously and never enqueued.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dendrite.exceptions import DendriteError, ErrorCode

if TYPE_CHECKING:
    from dendrite.config.settings import DendriteConfig

MIN_CONTENT_LENGTH = 10
MAX_CONTENT_LENGTH = 5000
MAX_EMPLOYEE_NAME_LENGTH = 100


def validate_evaluation(
    employee_name: str | None,
    content: str | None,
    config: "DendriteConfig | None" = None,
) -> tuple[str, str]:
    """
    Check one (employee, content) pair.

    Returns:
        The stripped (employee_name, content)

    Raises:
        DendriteError: INVALID_PARAMETER for a blank/too-long name,
            EVALUATION_EMPTY / EVALUATION_TOO_SHORT / EVALUATION_TOO_LONG for content
    """
    min_len = config.min_content_length if config else MIN_CONTENT_LENGTH
    max_len = config.max_content_length if config else MAX_CONTENT_LENGTH
    max_name = config.max_employee_name_length if config else MAX_EMPLOYEE_NAME_LENGTH

    name = (employee_name or "").strip()
    if not name:
        raise DendriteError(ErrorCode.INVALID_PARAMETER, "employee name is blank")
    if len(name) > max_name:
        raise DendriteError(
            ErrorCode.INVALID_PARAMETER, f"employee name longer than {max_name} characters"
        )

    text = (content or "").strip()
    if not text:
        raise DendriteError(ErrorCode.EVALUATION_EMPTY)
    if len(text) < min_len:
        raise DendriteError(
            ErrorCode.EVALUATION_TOO_SHORT, f"{len(text)} < {min_len} characters"
        )
    if len(text) > max_len:
        raise DendriteError(
            ErrorCode.EVALUATION_TOO_LONG, f"{len(text)} > {max_len} characters"
        )
    return name, text


def validate_batch(
    items: list[tuple[str, str]],
    config: "DendriteConfig | None" = None,
) -> list[tuple[str, str]]:
    """
    Validate every entry before anything is enqueued.

    The first offending entry rejects the whole batch; its position is
    included in the error detail.
    """
    if not items:
        raise DendriteError(ErrorCode.INVALID_PARAMETER, "batch is empty")
    cleaned: list[tuple[str, str]] = []
    for index, (employee_name, content) in enumerate(items):
        try:
            cleaned.append(validate_evaluation(employee_name, content, config))
        except DendriteError as e:
            raise DendriteError(e.error_code, f"entry {index}: {e.detail or e.error_code.message}") from e
    return cleaned
