from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from forms_backend.domain.models import AnswerSubmission, QuestionType, RespondentMeta


@dataclass(frozen=True)
class SubmitFormCommand:
    form_ref: str
    answers: AnswerSubmission
    respondent: RespondentMeta


@dataclass(frozen=True)
class QuestionDraft:
    text: str
    type: QuestionType
    required: bool = False
    position: int | None = None
    choices: tuple[str, ...] | None = None
    allow_multiple: bool = False


@dataclass(frozen=True)
class CreateFormCommand:
    owner_id: UUID
    title: str
    slug: str
    description: str = ""
    questions: tuple[QuestionDraft, ...] = ()
