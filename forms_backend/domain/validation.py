from __future__ import annotations

from collections import Counter
from typing import assert_never
from uuid import UUID

from forms_backend.domain.errors import (
    DuplicateAnswerError,
    InvalidChoiceError,
    MultipleSelectionNotAllowedError,
    RequiredAnswerMissingError,
    UnknownQuestionError,
)
from forms_backend.domain.models import (
    AnswerEntry,
    AnswerSubmission,
    BasicQuestion,
    ChoiceAnswer,
    MultipleChoiceQuestion,
    Question,
    QuestionSchema,
    TextAnswer,
    ValidatedAnswer,
    ValidatedAnswerSet,
)

COMPONENT_ID = "domain.submission.validate"


def validate_submission(schema: QuestionSchema, answers: AnswerSubmission) -> ValidatedAnswerSet:
    """Check raw answers against the form schema and normalize them.

    Evaluation is driven by schema position, never by the order the client
    sent answers in, so every permutation of the same answers produces the
    same outcome. The first violated rule raises a `SubmissionRejected`
    subclass:

    1. unknown question (any answer outside the schema)
    2. duplicate answer (a question referenced twice)
    3. per multiple choice question: too many selections, then labels
       outside the allowed set
    4. per required question: no usable answer

    Pure function, no I/O.
    """
    questions = schema.by_id()
    entries = _index_entries(questions, answers.entries)

    for question in schema.questions:
        entry = entries.get(question.question_id)
        if isinstance(question, MultipleChoiceQuestion) and entry is not None:
            _check_selection(question, _selection(entry))

    for question in schema.questions:
        if question.required and not _has_answer(question, entries.get(question.question_id)):
            raise RequiredAnswerMissingError(
                f"question {question.question_id} requires an answer",
                question_id=question.question_id,
            )

    accepted: list[ValidatedAnswer] = []
    for question in schema.questions:
        entry = entries.get(question.question_id)
        if entry is None:
            continue
        normalized = _normalize(question, entry)
        if normalized is not None:
            accepted.append(normalized)
    return ValidatedAnswerSet(form_id=schema.form_id, answers=tuple(accepted))


def _index_entries(questions: dict[UUID, Question], entries: tuple[AnswerEntry, ...]) -> dict[UUID, AnswerEntry]:
    unknown = sorted({entry.question_id for entry in entries if entry.question_id not in questions}, key=str)
    if unknown:
        raise UnknownQuestionError(
            f"question {unknown[0]} does not belong to this form",
            question_id=unknown[0],
        )

    counts = Counter(entry.question_id for entry in entries)
    duplicated = [question_id for question_id, count in counts.items() if count > 1]
    if duplicated:
        first = min(duplicated, key=lambda question_id: questions[question_id].position)
        raise DuplicateAnswerError(
            f"question {first} is answered more than once",
            question_id=first,
        )

    return {entry.question_id: entry for entry in entries}


def _selection(entry: AnswerEntry) -> tuple[str, ...]:
    # Repeated labels count once.
    return tuple(dict.fromkeys(entry.selected_choices or ()))


def _check_selection(question: MultipleChoiceQuestion, selection: tuple[str, ...]) -> None:
    if not selection:
        return
    if not question.allow_multiple and len(selection) > 1:
        raise MultipleSelectionNotAllowedError(
            f"question {question.question_id} accepts a single choice",
            question_id=question.question_id,
        )
    allowed = set(question.choices)
    for label in selection:
        if label not in allowed:
            raise InvalidChoiceError(
                f"'{label}' is not a choice of question {question.question_id}",
                question_id=question.question_id,
                label=label,
            )


def _has_text(entry: AnswerEntry) -> bool:
    return entry.text is not None and entry.text.strip() != ""


def _has_answer(question: Question, entry: AnswerEntry | None) -> bool:
    if entry is None:
        return False
    if isinstance(question, BasicQuestion):
        return _has_text(entry)
    if isinstance(question, MultipleChoiceQuestion):
        return bool(_selection(entry))
    assert_never(question)


def _normalize(question: Question, entry: AnswerEntry) -> ValidatedAnswer | None:
    # Only the field matching the question type survives.
    if isinstance(question, BasicQuestion):
        if not _has_text(entry):
            return None
        assert entry.text is not None
        return TextAnswer(question_id=question.question_id, position=question.position, text=entry.text)
    if isinstance(question, MultipleChoiceQuestion):
        selected = set(_selection(entry))
        if not selected:
            return None
        ordered = tuple(label for label in question.choices if label in selected)
        assert len(ordered) == len(selected), "selection escaped choice validation"
        return ChoiceAnswer(question_id=question.question_id, position=question.position, choices=ordered)
    assert_never(question)
