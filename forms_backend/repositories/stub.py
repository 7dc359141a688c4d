from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import UUID

from forms_backend.domain.errors import StorageError
from forms_backend.domain.ids import parse_uuid
from forms_backend.domain.models import (
    FilledForm,
    FilledFormAnswer,
    Form,
    FormStatus,
    Question,
    ValidatedAnswer,
    ValidatedAnswerSet,
    answer_rows,
)

# Called before each answer row is staged; tests use it to inject faults.
AnswerInsertHook = Callable[[int, ValidatedAnswer], Awaitable[None]]


@dataclass
class InMemoryFormRepository:
    """Non-network form collaborator with deterministic behavior."""

    forms: dict[UUID, Form] = field(default_factory=dict)
    questions: dict[UUID, list[Question]] = field(default_factory=dict)

    async def create_form(self, *, form: Form, questions: list[Question]) -> Form:
        if any(existing.slug == form.slug for existing in self.forms.values()):
            raise StorageError(
                f"slug '{form.slug}' is already in use",
                kind="constraint_violation",
                step="header_insert",
            )
        self.forms[form.form_id] = form
        self.questions[form.form_id] = sorted(questions, key=lambda question: question.position)
        return form

    async def get_by_slug_or_id(self, ref: str) -> Form | None:
        form_id = parse_uuid(ref)
        if form_id is not None:
            return self.forms.get(form_id)
        for form in self.forms.values():
            if form.slug == ref:
                return form
        return None

    async def get_questions_by_form_id(self, form_id: UUID) -> list[Question]:
        return list(self.questions.get(form_id, []))

    async def set_status(self, *, form_id: UUID, status: FormStatus) -> Form | None:
        form = self.forms.get(form_id)
        if form is None:
            return None
        updated = replace(form, status=status, updated_at=datetime.now(tz=UTC))
        self.forms[form_id] = updated
        return updated

    def find_question(self, question_id: UUID) -> Question | None:
        for questions in self.questions.values():
            for question in questions:
                if question.question_id == question_id:
                    return question
        return None


@dataclass
class _PendingWrite:
    header: FilledForm | None = None
    answers: list[FilledFormAnswer] = field(default_factory=list)


@dataclass
class InMemorySubmissionStore:
    """Submission store with all-or-nothing writes.

    Rows are staged in a pending write and only become visible when the
    transaction scope exits normally. Foreign keys to forms and questions are
    emulated when a form repository is attached.
    """

    forms: InMemoryFormRepository | None = None
    filled_forms: dict[UUID, FilledForm] = field(default_factory=dict)
    answers: dict[UUID, list[FilledFormAnswer]] = field(default_factory=dict)
    before_answer_insert: AnswerInsertHook | None = None
    commits: int = 0
    rollbacks: int = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[_PendingWrite]:
        pending = _PendingWrite()
        try:
            yield pending
        except BaseException:
            self.rollbacks += 1
            raise
        if pending.header is not None:
            self.filled_forms[pending.header.filled_form_id] = pending.header
            self.answers[pending.header.filled_form_id] = list(pending.answers)
        self.commits += 1

    async def write(self, *, filled_form: FilledForm, answers: ValidatedAnswerSet) -> FilledForm:
        rows = answer_rows(filled_form, answers)
        ordered = sorted(answers.answers, key=lambda answer: answer.position)
        async with self.transaction() as pending:
            if filled_form.filled_form_id in self.filled_forms:
                raise StorageError(
                    f"filled form {filled_form.filled_form_id} already exists",
                    kind="constraint_violation",
                    step="header_insert",
                )
            if self.forms is not None and filled_form.form_id not in self.forms.forms:
                raise StorageError(
                    f"form {filled_form.form_id} does not exist",
                    kind="constraint_violation",
                    step="header_insert",
                )
            pending.header = replace(filled_form, answers=())

            for index, (answer, row) in enumerate(zip(ordered, rows)):
                if self.before_answer_insert is not None:
                    await self.before_answer_insert(index, answer)
                if self.forms is not None and self.forms.find_question(row.question_id) is None:
                    raise StorageError(
                        f"question {row.question_id} does not exist",
                        kind="constraint_violation",
                        step="answer_insert",
                    )
                pending.answers.append(row)
        return replace(filled_form, answers=rows)

    async def read_by_id(self, filled_form_id: UUID) -> FilledForm | None:
        header = self.filled_forms.get(filled_form_id)
        if header is None:
            return None
        return replace(header, answers=self._answers_for(filled_form_id))

    async def read_by_form(self, form_id: UUID, *, detailed: bool = False) -> list[FilledForm]:
        headers = [header for header in self.filled_forms.values() if header.form_id == form_id]
        headers.sort(key=lambda header: (header.created_at, header.filled_form_id.int), reverse=True)
        if not detailed:
            return headers
        return [replace(header, answers=self._answers_for(header.filled_form_id)) for header in headers]

    async def has_submission_from(self, *, form_id: UUID, user_ip: str) -> bool:
        return any(
            header.form_id == form_id and header.respondent.user_ip == user_ip
            for header in self.filled_forms.values()
        )

    def _answers_for(self, filled_form_id: UUID) -> tuple[FilledFormAnswer, ...]:
        rows = []
        for row in self.answers.get(filled_form_id, []):
            question = self.forms.find_question(row.question_id) if self.forms is not None else None
            if question is not None:
                row = replace(row, question_text=question.text, position=question.position)
            rows.append(row)
        rows.sort(key=lambda row: row.position if row.position is not None else 0)
        return tuple(rows)
