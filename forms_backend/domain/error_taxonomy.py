from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

# Canonical error vocabulary shared by the domain and the HTTP layer.
ErrorCode = Literal[
    "validation_error",
    "unknown_question",
    "duplicate_answer",
    "multiple_selection_not_allowed",
    "invalid_choice",
    "required_answer_missing",
    "form_not_found",
    "form_closed",
    "submission_not_found",
    "forbidden",
    "unauthenticated",
    "storage_connectivity",
    "storage_constraint_violation",
    "storage_serialization_conflict",
    "submit_timeout",
    "internal_error",
]

RetryClassification = Literal["recoverable", "terminal"]

StorageErrorKind = Literal["connectivity", "constraint_violation", "serialization_conflict", "unknown"]

WriteStep = Literal["connect", "header_insert", "answer_insert", "question_insert", "update", "commit", "read"]

CANONICAL_ERROR_CODES: tuple[ErrorCode, ...] = (
    "validation_error",
    "unknown_question",
    "duplicate_answer",
    "multiple_selection_not_allowed",
    "invalid_choice",
    "required_answer_missing",
    "form_not_found",
    "form_closed",
    "submission_not_found",
    "forbidden",
    "unauthenticated",
    "storage_connectivity",
    "storage_constraint_violation",
    "storage_serialization_conflict",
    "submit_timeout",
    "internal_error",
)

# Errors a caller may retry. Retrying is always the caller's decision,
# nothing inside the service retries on its own.
RECOVERABLE_ERROR_CODES: frozenset[ErrorCode] = frozenset(
    {
        "storage_connectivity",
        "storage_serialization_conflict",
        "submit_timeout",
    }
)

HTTP_STATUS_BY_CODE: Mapping[ErrorCode, int] = {
    "validation_error": 422,
    "unknown_question": 422,
    "duplicate_answer": 422,
    "multiple_selection_not_allowed": 422,
    "invalid_choice": 422,
    "required_answer_missing": 422,
    "form_not_found": 404,
    "form_closed": 409,
    "submission_not_found": 404,
    "forbidden": 403,
    "unauthenticated": 401,
    "storage_connectivity": 503,
    "storage_constraint_violation": 409,
    "storage_serialization_conflict": 503,
    "submit_timeout": 504,
    "internal_error": 500,
}


def is_canonical_error_code(code: str) -> bool:
    return code in CANONICAL_ERROR_CODES


def classify_error(code: ErrorCode) -> RetryClassification:
    if code in RECOVERABLE_ERROR_CODES:
        return "recoverable"
    return "terminal"


def http_status_for(code: str) -> int:
    if not is_canonical_error_code(code):
        return 500
    return HTTP_STATUS_BY_CODE[code]  # type: ignore[index]
