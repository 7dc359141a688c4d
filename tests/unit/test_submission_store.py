from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from forms_backend.domain.errors import StorageError
from forms_backend.domain.models import (
    FilledForm,
    Form,
    FormStatus,
    RespondentMeta,
    TextAnswer,
    ValidatedAnswer,
    ValidatedAnswerSet,
)
from forms_backend.domain.validation import validate_submission
from forms_backend.repositories.stub import InMemoryFormRepository, InMemorySubmissionStore
from tests.unit.form_fixtures import FORM_ID, Q1, Q2, choices, color_schema, submission, text

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _seeded_store() -> tuple[InMemoryFormRepository, InMemorySubmissionStore]:
    forms = InMemoryFormRepository()
    schema = color_schema()
    form = Form(form_id=FORM_ID, owner_id=uuid4(), title="Colors", description="", slug="colors", status=FormStatus.OPEN)
    asyncio.run(forms.create_form(form=form, questions=list(schema.questions)))
    return forms, InMemorySubmissionStore(forms=forms)


def _header(*, created_at: datetime = NOW, user_ip: str | None = "10.0.0.1") -> FilledForm:
    return FilledForm(
        filled_form_id=uuid4(),
        form_id=FORM_ID,
        created_at=created_at,
        respondent=RespondentMeta(name="Ann", email="ann@example.com", user_ip=user_ip),
    )


def _answers() -> ValidatedAnswerSet:
    return validate_submission(color_schema(), submission(text(Q1, "hello"), choices(Q2, "Red")))


@pytest.mark.unit
def test_write_commits_header_and_answers_together() -> None:
    _, store = _seeded_store()
    header = _header()

    persisted = asyncio.run(store.write(filled_form=header, answers=_answers()))
    loaded = asyncio.run(store.read_by_id(header.filled_form_id))

    assert len(persisted.answers) == 2
    assert loaded is not None
    assert [answer.question_id for answer in loaded.answers] == [Q1, Q2]
    assert loaded.answers[0].text == "hello"
    assert loaded.answers[0].question_text == "Say something"
    assert loaded.answers[1].selected_choices == ("Red",)
    assert store.commits == 1
    assert store.rollbacks == 0


@pytest.mark.unit
def test_failed_answer_insert_leaves_nothing_behind() -> None:
    _, store = _seeded_store()

    async def fail_on_second(index: int, answer: ValidatedAnswer) -> None:
        del answer
        if index == 1:
            raise StorageError("connection reset", kind="connectivity", step="answer_insert")

    store.before_answer_insert = fail_on_second
    header = _header()

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(store.write(filled_form=header, answers=_answers()))

    assert exc_info.value.step == "answer_insert"
    assert exc_info.value.code == "storage_connectivity"
    assert asyncio.run(store.read_by_id(header.filled_form_id)) is None
    assert store.filled_forms == {}
    assert store.answers == {}
    assert store.rollbacks == 1


@pytest.mark.unit
def test_cancelled_write_rolls_back() -> None:
    _, store = _seeded_store()

    async def stall(index: int, answer: ValidatedAnswer) -> None:
        del answer
        if index == 1:
            await asyncio.sleep(10)

    store.before_answer_insert = stall
    header = _header()

    async def _run() -> None:
        async with asyncio.timeout(0.01):
            await store.write(filled_form=header, answers=_answers())

    with pytest.raises(TimeoutError):
        asyncio.run(_run())

    assert asyncio.run(store.read_by_id(header.filled_form_id)) is None
    assert store.rollbacks == 1
    assert store.commits == 0


@pytest.mark.unit
def test_answer_for_unknown_question_violates_foreign_key() -> None:
    _, store = _seeded_store()
    header = _header()
    answers = ValidatedAnswerSet(
        form_id=FORM_ID,
        answers=(
            TextAnswer(question_id=Q1, position=1, text="hello"),
            TextAnswer(question_id=uuid4(), position=2, text="orphan"),
        ),
    )

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(store.write(filled_form=header, answers=answers))

    assert exc_info.value.kind == "constraint_violation"
    assert exc_info.value.step == "answer_insert"
    assert asyncio.run(store.read_by_id(header.filled_form_id)) is None


@pytest.mark.unit
def test_header_for_unknown_form_violates_foreign_key() -> None:
    _, store = _seeded_store()
    header = FilledForm(filled_form_id=uuid4(), form_id=uuid4(), created_at=NOW)

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(store.write(filled_form=header, answers=ValidatedAnswerSet(form_id=header.form_id)))

    assert exc_info.value.step == "header_insert"
    assert store.filled_forms == {}


@pytest.mark.unit
def test_duplicate_filled_form_id_is_rejected() -> None:
    _, store = _seeded_store()
    header = _header()
    asyncio.run(store.write(filled_form=header, answers=_answers()))

    with pytest.raises(StorageError) as exc_info:
        asyncio.run(store.write(filled_form=header, answers=_answers()))

    assert exc_info.value.kind == "constraint_violation"
    assert len(store.answers[header.filled_form_id]) == 2


@pytest.mark.unit
def test_read_by_form_lists_newest_first() -> None:
    _, store = _seeded_store()
    older = _header(created_at=NOW)
    newer = _header(created_at=NOW + timedelta(minutes=5))
    asyncio.run(store.write(filled_form=older, answers=_answers()))
    asyncio.run(store.write(filled_form=newer, answers=_answers()))

    summary = asyncio.run(store.read_by_form(FORM_ID))
    detailed = asyncio.run(store.read_by_form(FORM_ID, detailed=True))

    assert [item.filled_form_id for item in summary] == [newer.filled_form_id, older.filled_form_id]
    assert all(item.answers == () for item in summary)
    assert all(len(item.answers) == 2 for item in detailed)


@pytest.mark.unit
def test_has_submission_from_matches_form_and_ip() -> None:
    _, store = _seeded_store()
    asyncio.run(store.write(filled_form=_header(user_ip="10.0.0.1"), answers=_answers()))

    assert asyncio.run(store.has_submission_from(form_id=FORM_ID, user_ip="10.0.0.1")) is True
    assert asyncio.run(store.has_submission_from(form_id=FORM_ID, user_ip="10.0.0.2")) is False
    assert asyncio.run(store.has_submission_from(form_id=uuid4(), user_ip="10.0.0.1")) is False
