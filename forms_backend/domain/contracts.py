from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from forms_backend.domain.models import FilledForm, Form, FormStatus, Question, ValidatedAnswerSet


@runtime_checkable
class FormLookup(Protocol):
    async def get_by_slug_or_id(self, ref: str) -> Form | None: ...


@runtime_checkable
class SchemaLookup(Protocol):
    async def get_questions_by_form_id(self, form_id: UUID) -> list[Question]: ...


@runtime_checkable
class FormRepository(FormLookup, SchemaLookup, Protocol):
    """Form collaborator: lookups used by submissions plus the minimal write side."""

    async def create_form(self, *, form: Form, questions: list[Question]) -> Form: ...

    async def set_status(self, *, form_id: UUID, status: FormStatus) -> Form | None: ...


@runtime_checkable
class SubmissionStore(Protocol):
    """Transactional persistence of filled forms.

    `write` commits the header and every answer row together or nothing at
    all; readers never observe a header without its answers.
    """

    async def write(self, *, filled_form: FilledForm, answers: ValidatedAnswerSet) -> FilledForm: ...

    async def read_by_id(self, filled_form_id: UUID) -> FilledForm | None: ...

    async def read_by_form(self, form_id: UUID, *, detailed: bool = False) -> list[FilledForm]: ...

    async def has_submission_from(self, *, form_id: UUID, user_ip: str) -> bool: ...
