from __future__ import annotations

from uuid import UUID

from forms_backend.domain.error_taxonomy import ErrorCode, StorageErrorKind, WriteStep


class DomainError(Exception):
    code: ErrorCode = "internal_error"


class DomainValidationError(DomainError):
    code: ErrorCode = "validation_error"


class DomainInvariantError(DomainError):
    pass


class DomainDependencyError(DomainError):
    pass


class SubmissionRejected(DomainValidationError):
    """Client-caused rejection of a submission, optionally tied to a question."""

    def __init__(self, message: str, *, question_id: UUID | None = None, label: str | None = None) -> None:
        super().__init__(message)
        self.question_id = question_id
        self.label = label


class UnknownQuestionError(SubmissionRejected):
    code: ErrorCode = "unknown_question"


class DuplicateAnswerError(SubmissionRejected):
    code: ErrorCode = "duplicate_answer"


class MultipleSelectionNotAllowedError(SubmissionRejected):
    code: ErrorCode = "multiple_selection_not_allowed"


class InvalidChoiceError(SubmissionRejected):
    code: ErrorCode = "invalid_choice"


class RequiredAnswerMissingError(SubmissionRejected):
    code: ErrorCode = "required_answer_missing"


class FormNotFoundError(SubmissionRejected):
    code: ErrorCode = "form_not_found"


class FormClosedError(SubmissionRejected):
    code: ErrorCode = "form_closed"


class SubmissionNotFoundError(DomainError):
    code: ErrorCode = "submission_not_found"


class ForbiddenError(DomainError):
    code: ErrorCode = "forbidden"


class StorageError(DomainDependencyError):
    """Persistence failure; `step` tells which write/read stage failed."""

    def __init__(self, message: str, *, kind: StorageErrorKind, step: WriteStep) -> None:
        super().__init__(message)
        self.kind = kind
        self.step = step

    @property
    def code(self) -> ErrorCode:  # type: ignore[override]
        return {
            "connectivity": "storage_connectivity",
            "constraint_violation": "storage_constraint_violation",
            "serialization_conflict": "storage_serialization_conflict",
            "unknown": "internal_error",
        }[self.kind]


class UnauthenticatedError(DomainError):
    code: ErrorCode = "unauthenticated"


class SubmitTimeoutError(DomainDependencyError):
    code: ErrorCode = "submit_timeout"
