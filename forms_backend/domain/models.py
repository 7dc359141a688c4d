from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Union, assert_never
from uuid import UUID

from forms_backend.domain.errors import DomainInvariantError, DomainValidationError
from forms_backend.domain.ids import new_answer_id


# Keep synchronized with the CHECK constraints in
# db/migrations/000001_bootstrap.up.sql.
class FormStatus(StrEnum):
    OPEN = "open"
    CLOSED = "closed"


class QuestionType(StrEnum):
    BASIC = "basic"
    MULTIPLE_CHOICE = "multiple_choice"


@dataclass(frozen=True)
class Form:
    form_id: UUID
    owner_id: UUID
    title: str
    description: str
    slug: str
    status: FormStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == FormStatus.OPEN


@dataclass(frozen=True)
class BasicQuestion:
    question_id: UUID
    form_id: UUID
    text: str
    position: int
    required: bool = False

    @property
    def type(self) -> QuestionType:
        return QuestionType.BASIC


@dataclass(frozen=True)
class MultipleChoiceQuestion:
    question_id: UUID
    form_id: UUID
    text: str
    position: int
    choices: tuple[str, ...]
    allow_multiple: bool = False
    required: bool = False

    def __post_init__(self) -> None:
        if len(self.choices) < 2:
            raise DomainValidationError("multiple choice question needs at least two choices")
        if len(set(self.choices)) != len(self.choices):
            raise DomainValidationError("multiple choice labels must be unique")
        if any(not label for label in self.choices):
            raise DomainValidationError("multiple choice labels must be non-empty")

    @property
    def type(self) -> QuestionType:
        return QuestionType.MULTIPLE_CHOICE


Question = Union[BasicQuestion, MultipleChoiceQuestion]


@dataclass(frozen=True)
class QuestionSchema:
    """Authoritative, position-ordered question set of one form."""

    form_id: UUID
    questions: tuple[Question, ...]

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.questions, key=lambda question: question.position))
        object.__setattr__(self, "questions", ordered)

        positions = [question.position for question in ordered]
        if len(set(positions)) != len(positions):
            raise DomainValidationError("question positions must be unique within a form")
        ids = [question.question_id for question in ordered]
        if len(set(ids)) != len(ids):
            raise DomainValidationError("question ids must be unique within a form")
        if any(question.form_id != self.form_id for question in ordered):
            raise DomainValidationError("question belongs to another form")

    def by_id(self) -> dict[UUID, Question]:
        return {question.question_id: question for question in self.questions}


@dataclass(frozen=True)
class AnswerEntry:
    """One raw, untrusted answer as supplied by the respondent."""

    question_id: UUID
    text: str | None = None
    selected_choices: tuple[str, ...] | None = None


@dataclass(frozen=True)
class AnswerSubmission:
    entries: tuple[AnswerEntry, ...] = ()


@dataclass(frozen=True)
class TextAnswer:
    question_id: UUID
    position: int
    text: str


@dataclass(frozen=True)
class ChoiceAnswer:
    question_id: UUID
    position: int
    choices: tuple[str, ...]


ValidatedAnswer = Union[TextAnswer, ChoiceAnswer]


@dataclass(frozen=True)
class ValidatedAnswerSet:
    form_id: UUID
    answers: tuple[ValidatedAnswer, ...] = ()

    def __len__(self) -> int:
        return len(self.answers)


@dataclass(frozen=True)
class RespondentMeta:
    name: str | None = None
    email: str | None = None
    user_ip: str | None = None


@dataclass(frozen=True)
class FilledFormAnswer:
    answer_id: UUID
    filled_form_id: UUID
    question_id: UUID
    text: str | None
    selected_choices: tuple[str, ...] | None
    created_at: datetime
    # Display metadata joined from the question on read paths.
    question_text: str | None = None
    position: int | None = None


@dataclass(frozen=True)
class FilledForm:
    filled_form_id: UUID
    form_id: UUID
    created_at: datetime
    respondent: RespondentMeta = field(default_factory=RespondentMeta)
    answers: tuple[FilledFormAnswer, ...] = ()


def answer_rows(filled_form: FilledForm, answers: ValidatedAnswerSet) -> tuple[FilledFormAnswer, ...]:
    """Child rows for `filled_form`, one per validated answer, in position order."""
    if answers.form_id != filled_form.form_id:
        raise DomainInvariantError("validated answers belong to another form")

    rows: list[FilledFormAnswer] = []
    for answer in sorted(answers.answers, key=lambda item: item.position):
        if isinstance(answer, TextAnswer):
            text, choices = answer.text, None
        elif isinstance(answer, ChoiceAnswer):
            text, choices = None, answer.choices
        else:
            assert_never(answer)
        assert (text is not None) != bool(choices), "answer must carry exactly one value"
        rows.append(
            FilledFormAnswer(
                answer_id=new_answer_id(),
                filled_form_id=filled_form.filled_form_id,
                question_id=answer.question_id,
                text=text,
                selected_choices=choices,
                created_at=filled_form.created_at,
                position=answer.position,
            )
        )
    return tuple(rows)
