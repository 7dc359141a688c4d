from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any
from uuid import UUID

import asyncpg

from forms_backend.domain.error_taxonomy import StorageErrorKind, WriteStep
from forms_backend.domain.errors import StorageError
from forms_backend.domain.ids import parse_uuid
from forms_backend.domain.models import (
    BasicQuestion,
    FilledForm,
    FilledFormAnswer,
    Form,
    FormStatus,
    MultipleChoiceQuestion,
    Question,
    QuestionType,
    RespondentMeta,
    ValidatedAnswerSet,
    answer_rows,
)
from forms_backend.repositories.sql_loader import load_sql


SQL_CREATE_FORM = load_sql("create_form.sql")
SQL_CREATE_QUESTION = load_sql("create_question.sql")
SQL_GET_FORM_BY_ID = load_sql("get_form_by_id.sql")
SQL_GET_FORM_BY_SLUG = load_sql("get_form_by_slug.sql")
SQL_LIST_QUESTIONS_BY_FORM = load_sql("list_questions_by_form.sql")
SQL_SET_FORM_STATUS = load_sql("set_form_status.sql")
SQL_INSERT_FILLED_FORM = load_sql("insert_filled_form.sql")
SQL_INSERT_FILLED_FORM_ANSWER = load_sql("insert_filled_form_answer.sql")
SQL_GET_FILLED_FORM = load_sql("get_filled_form.sql")
SQL_LIST_FILLED_FORMS_BY_FORM = load_sql("list_filled_forms_by_form.sql")
SQL_LIST_ANSWERS_BY_FILLED_FORMS = load_sql("list_answers_by_filled_forms.sql")
SQL_HAS_SUBMISSION_FROM_IP = load_sql("has_submission_from_ip.sql")

# Driver failures that are translated into StorageError.
DRIVER_ERRORS: tuple[type[BaseException], ...] = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def storage_error_kind(exc: BaseException) -> StorageErrorKind:
    sqlstate = getattr(exc, "sqlstate", None)
    if isinstance(sqlstate, str):
        if sqlstate.startswith("23"):
            return "constraint_violation"
        if sqlstate in ("40001", "40P01"):
            return "serialization_conflict"
        if sqlstate.startswith("08"):
            return "connectivity"
    if isinstance(exc, (asyncpg.PostgresConnectionError, asyncpg.InterfaceError, OSError)):
        return "connectivity"
    return "unknown"


def _storage_error(exc: BaseException, *, step: WriteStep) -> StorageError:
    return StorageError(f"{step} failed: {exc}", kind=storage_error_kind(exc), step=step)


@dataclass
class AsyncpgPoolManager:
    dsn: str
    min_size: int = 1
    max_size: int = 5
    command_timeout: float | None = None
    pool: Any | None = None

    async def startup(self) -> None:
        async def _init_connection(conn: Any) -> None:
            await conn.set_type_codec(
                "jsonb",
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog",
            )

        self.pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            init=_init_connection,
        )

    async def shutdown(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None

    def _pool(self) -> Any:
        if self.pool is None:
            raise RuntimeError("postgres pool is not initialized")
        return self.pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        async with self._pool().acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        """Scoped transaction: commits on normal exit, rolls back on any other.

        Cancellation of the calling task counts as an abnormal exit, so an
        aborted request never leaves a half-written transaction behind.
        """
        async with self._pool().acquire() as conn:
            async with conn.transaction(isolation="read_committed"):
                yield conn


@dataclass
class PostgresFormRepository:
    pool_manager: AsyncpgPoolManager

    async def create_form(self, *, form: Form, questions: list[Question]) -> Form:
        step: WriteStep = "connect"
        try:
            async with self.pool_manager.transaction() as conn:
                step = "header_insert"
                row = await conn.fetchrow(
                    SQL_CREATE_FORM,
                    form.form_id,
                    form.owner_id,
                    form.title,
                    form.description,
                    form.slug,
                    form.status.value,
                    form.created_at,
                    form.updated_at,
                )
                step = "question_insert"
                for question in questions:
                    await conn.execute(SQL_CREATE_QUESTION, *_question_params(question, created_at=form.created_at))
                step = "commit"
        except DRIVER_ERRORS as exc:
            raise _storage_error(exc, step=step) from exc
        return _form_from_row(row)

    async def get_by_slug_or_id(self, ref: str) -> Form | None:
        form_id = parse_uuid(ref)
        try:
            async with self.pool_manager.connection() as conn:
                if form_id is not None:
                    row = await conn.fetchrow(SQL_GET_FORM_BY_ID, form_id)
                else:
                    row = await conn.fetchrow(SQL_GET_FORM_BY_SLUG, ref)
        except DRIVER_ERRORS as exc:
            raise _storage_error(exc, step="read") from exc
        if row is None:
            return None
        return _form_from_row(row)

    async def get_questions_by_form_id(self, form_id: UUID) -> list[Question]:
        try:
            async with self.pool_manager.connection() as conn:
                rows = await conn.fetch(SQL_LIST_QUESTIONS_BY_FORM, form_id)
        except DRIVER_ERRORS as exc:
            raise _storage_error(exc, step="read") from exc
        return [_question_from_row(row) for row in rows]

    async def set_status(self, *, form_id: UUID, status: FormStatus) -> Form | None:
        try:
            async with self.pool_manager.connection() as conn:
                row = await conn.fetchrow(SQL_SET_FORM_STATUS, form_id, status.value)
        except DRIVER_ERRORS as exc:
            raise _storage_error(exc, step="update") from exc
        if row is None:
            return None
        return _form_from_row(row)


@dataclass
class PostgresSubmissionStore:
    pool_manager: AsyncpgPoolManager

    async def write(self, *, filled_form: FilledForm, answers: ValidatedAnswerSet) -> FilledForm:
        rows = answer_rows(filled_form, answers)
        respondent = filled_form.respondent
        step: WriteStep = "connect"
        try:
            async with self.pool_manager.transaction() as conn:
                step = "header_insert"
                await conn.execute(
                    SQL_INSERT_FILLED_FORM,
                    filled_form.filled_form_id,
                    filled_form.form_id,
                    respondent.name,
                    respondent.email,
                    respondent.user_ip,
                    filled_form.created_at,
                )
                step = "answer_insert"
                for row in rows:
                    await conn.execute(
                        SQL_INSERT_FILLED_FORM_ANSWER,
                        row.answer_id,
                        row.filled_form_id,
                        row.question_id,
                        row.text,
                        list(row.selected_choices) if row.selected_choices is not None else None,
                        row.created_at,
                    )
                step = "commit"
        except DRIVER_ERRORS as exc:
            raise _storage_error(exc, step=step) from exc
        return replace(filled_form, answers=rows)

    async def read_by_id(self, filled_form_id: UUID) -> FilledForm | None:
        try:
            async with self.pool_manager.connection() as conn:
                header = await conn.fetchrow(SQL_GET_FILLED_FORM, filled_form_id)
                if header is None:
                    return None
                answer_records = await conn.fetch(SQL_LIST_ANSWERS_BY_FILLED_FORMS, [filled_form_id])
        except DRIVER_ERRORS as exc:
            raise _storage_error(exc, step="read") from exc
        return replace(
            _filled_form_from_row(header),
            answers=tuple(_answer_from_row(row) for row in answer_records),
        )

    async def read_by_form(self, form_id: UUID, *, detailed: bool = False) -> list[FilledForm]:
        try:
            async with self.pool_manager.connection() as conn:
                headers = await conn.fetch(SQL_LIST_FILLED_FORMS_BY_FORM, form_id)
                answer_records = []
                if detailed and headers:
                    answer_records = await conn.fetch(
                        SQL_LIST_ANSWERS_BY_FILLED_FORMS,
                        [row["id"] for row in headers],
                    )
        except DRIVER_ERRORS as exc:
            raise _storage_error(exc, step="read") from exc

        grouped: dict[UUID, list[FilledFormAnswer]] = {}
        for record in answer_records:
            answer = _answer_from_row(record)
            grouped.setdefault(answer.filled_form_id, []).append(answer)
        return [
            replace(
                _filled_form_from_row(row),
                answers=tuple(grouped.get(row["id"], ())),
            )
            for row in headers
        ]

    async def has_submission_from(self, *, form_id: UUID, user_ip: str) -> bool:
        try:
            async with self.pool_manager.connection() as conn:
                exists = await conn.fetchval(SQL_HAS_SUBMISSION_FROM_IP, form_id, user_ip)
        except DRIVER_ERRORS as exc:
            raise _storage_error(exc, step="read") from exc
        return bool(exists)


def _question_params(question: Question, *, created_at: object) -> tuple[object, ...]:
    choices: list[str] | None = None
    allow_multiple = False
    if isinstance(question, MultipleChoiceQuestion):
        choices = list(question.choices)
        allow_multiple = question.allow_multiple
    return (
        question.question_id,
        question.form_id,
        question.text,
        question.type.value,
        question.position,
        question.required,
        choices,
        allow_multiple,
        created_at,
    )


def _form_from_row(row: Any) -> Form:
    return Form(
        form_id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        description=row["description"],
        slug=row["slug"],
        status=FormStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _question_from_row(row: Any) -> Question:
    if row["type"] == QuestionType.MULTIPLE_CHOICE:
        return MultipleChoiceQuestion(
            question_id=row["id"],
            form_id=row["form_id"],
            text=row["question_text"],
            position=row["position"],
            choices=tuple(_json_list(row["choices"])),
            allow_multiple=row["allow_multiple"],
            required=row["required"],
        )
    return BasicQuestion(
        question_id=row["id"],
        form_id=row["form_id"],
        text=row["question_text"],
        position=row["position"],
        required=row["required"],
    )


def _filled_form_from_row(row: Any) -> FilledForm:
    return FilledForm(
        filled_form_id=row["id"],
        form_id=row["form_id"],
        created_at=row["created_at"],
        respondent=RespondentMeta(
            name=row["name"],
            email=row["email"],
            user_ip=row["user_ip"],
        ),
    )


def _answer_from_row(row: Any) -> FilledFormAnswer:
    selected = row["selected_choices"]
    return FilledFormAnswer(
        answer_id=row["id"],
        filled_form_id=row["filled_form_id"],
        question_id=row["question_id"],
        text=row["answer"],
        selected_choices=tuple(_json_list(selected)) if selected is not None else None,
        created_at=row["created_at"],
        question_text=row["question_text"],
        position=row["position"],
    )


def _json_list(value: object) -> list[str]:
    if isinstance(value, str):
        value = json.loads(value)
    if isinstance(value, list):
        return [str(item) for item in value]
    return []
