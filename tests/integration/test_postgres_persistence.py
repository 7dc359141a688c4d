from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from forms_backend.domain.dto import CreateFormCommand
from forms_backend.domain.errors import StorageError
from forms_backend.domain.ids import new_filled_form_id
from forms_backend.domain.models import (
    ChoiceAnswer,
    FilledForm,
    FormStatus,
    QuestionSchema,
    RespondentMeta,
    TextAnswer,
    ValidatedAnswerSet,
)
from forms_backend.domain.use_cases.forms import FormService
from forms_backend.repositories.postgres import AsyncpgPoolManager, PostgresFormRepository, PostgresSubmissionStore
from tests.integration.postgres_test_utils import apply_down, apply_up, require_postgres, reset_public_schema
from tests.unit.form_fixtures import color_form_command

NOW = datetime(2026, 5, 1, 9, 30, tzinfo=UTC)

Scenario = Callable[[PostgresFormRepository, PostgresSubmissionStore], Awaitable[None]]


def _run_scenario(scenario: Scenario) -> None:
    dsn = require_postgres()

    async def _run() -> None:
        await reset_public_schema(dsn=dsn)
        await apply_up(dsn=dsn)
        manager = AsyncpgPoolManager(dsn=dsn)
        await manager.startup()
        try:
            await scenario(PostgresFormRepository(pool_manager=manager), PostgresSubmissionStore(pool_manager=manager))
        finally:
            await manager.shutdown()

    asyncio.run(_run())


async def _seed(forms: PostgresFormRepository, cmd: CreateFormCommand | None = None) -> QuestionSchema:
    _, schema = await FormService(forms=forms, clock=lambda: NOW).create_form(cmd or color_form_command())
    return schema


def _header(schema: QuestionSchema, *, created_at: datetime = NOW, user_ip: str | None = "10.0.0.1") -> FilledForm:
    return FilledForm(
        filled_form_id=new_filled_form_id(),
        form_id=schema.form_id,
        created_at=created_at,
        respondent=RespondentMeta(name="Ann", email="ann@example.com", user_ip=user_ip),
    )


def _answers(schema: QuestionSchema) -> ValidatedAnswerSet:
    first, second = schema.questions
    return ValidatedAnswerSet(
        form_id=schema.form_id,
        answers=(
            TextAnswer(question_id=first.question_id, position=first.position, text="hello"),
            ChoiceAnswer(question_id=second.question_id, position=second.position, choices=("Blue",)),
        ),
    )


@pytest.mark.integration
def test_migration_up_down_up_contract() -> None:
    dsn = require_postgres()

    async def _run() -> None:
        await reset_public_schema(dsn=dsn)
        await apply_up(dsn=dsn)
        manager = AsyncpgPoolManager(dsn=dsn)
        await manager.startup()
        try:
            store = PostgresSubmissionStore(pool_manager=manager)
            assert await store.read_by_id(uuid4()) is None
        finally:
            await manager.shutdown()

        await apply_down(dsn=dsn)
        await apply_up(dsn=dsn)

    asyncio.run(_run())


@pytest.mark.integration
def test_form_round_trips_by_slug_and_id() -> None:
    async def scenario(forms: PostgresFormRepository, store: PostgresSubmissionStore) -> None:
        del store
        schema = await _seed(forms)

        by_slug = await forms.get_by_slug_or_id("colors")
        by_id = await forms.get_by_slug_or_id(str(schema.form_id))
        questions = await forms.get_questions_by_form_id(schema.form_id)

        assert by_slug is not None and by_id is not None
        assert by_slug.form_id == by_id.form_id == schema.form_id
        assert tuple(questions) == schema.questions

        closed = await forms.set_status(form_id=schema.form_id, status=FormStatus.CLOSED)
        assert closed is not None and closed.status == FormStatus.CLOSED

    _run_scenario(scenario)


@pytest.mark.integration
def test_duplicate_slug_is_constraint_violation() -> None:
    async def scenario(forms: PostgresFormRepository, store: PostgresSubmissionStore) -> None:
        del store
        await _seed(forms)

        with pytest.raises(StorageError) as exc_info:
            await _seed(forms)

        assert exc_info.value.kind == "constraint_violation"
        assert exc_info.value.step == "header_insert"

    _run_scenario(scenario)


@pytest.mark.integration
def test_write_and_read_submission() -> None:
    async def scenario(forms: PostgresFormRepository, store: PostgresSubmissionStore) -> None:
        schema = await _seed(forms)
        header = _header(schema)

        persisted = await store.write(filled_form=header, answers=_answers(schema))
        loaded = await store.read_by_id(header.filled_form_id)

        assert len(persisted.answers) == 2
        assert loaded is not None
        assert loaded.respondent == header.respondent
        assert [answer.position for answer in loaded.answers] == [1, 2]
        assert loaded.answers[0].text == "hello"
        assert loaded.answers[0].selected_choices is None
        assert loaded.answers[1].selected_choices == ("Blue",)
        assert loaded.answers[1].question_text == "Favourite color"
        assert await store.has_submission_from(form_id=schema.form_id, user_ip="10.0.0.1") is True
        assert await store.has_submission_from(form_id=schema.form_id, user_ip="10.0.0.2") is False

    _run_scenario(scenario)


@pytest.mark.integration
def test_failed_answer_insert_rolls_back_header() -> None:
    async def scenario(forms: PostgresFormRepository, store: PostgresSubmissionStore) -> None:
        schema = await _seed(forms)
        header = _header(schema)
        first = schema.questions[0]
        answers = ValidatedAnswerSet(
            form_id=schema.form_id,
            answers=(
                TextAnswer(question_id=first.question_id, position=1, text="hello"),
                TextAnswer(question_id=uuid4(), position=2, text="orphan"),
            ),
        )

        with pytest.raises(StorageError) as exc_info:
            await store.write(filled_form=header, answers=answers)

        assert exc_info.value.kind == "constraint_violation"
        assert exc_info.value.step == "answer_insert"
        assert await store.read_by_id(header.filled_form_id) is None
        assert await store.read_by_form(schema.form_id) == []

    _run_scenario(scenario)


@pytest.mark.integration
def test_read_by_form_lists_newest_first() -> None:
    async def scenario(forms: PostgresFormRepository, store: PostgresSubmissionStore) -> None:
        schema = await _seed(forms)
        older = _header(schema)
        newer = _header(schema, created_at=NOW + timedelta(minutes=1))
        await store.write(filled_form=older, answers=_answers(schema))
        await store.write(filled_form=newer, answers=_answers(schema))

        summary = await store.read_by_form(schema.form_id)
        detailed = await store.read_by_form(schema.form_id, detailed=True)

        assert [item.filled_form_id for item in summary] == [newer.filled_form_id, older.filled_form_id]
        assert all(item.answers == () for item in summary)
        assert [len(item.answers) for item in detailed] == [2, 2]

    _run_scenario(scenario)
