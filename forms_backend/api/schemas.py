from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from forms_backend.domain.models import FormStatus, QuestionType


SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class ErrorResponse(BaseModel):
    detail: str
    code: str
    question_id: UUID | None = None
    label: str | None = None


class HealthResponse(BaseModel):
    status: str
    service: str
    mode: str


class ReadyResponse(BaseModel):
    status: str
    service: str
    mode: str
    storage_ready: bool


class CreateQuestionRequest(BaseModel):
    question_text: str = Field(min_length=1, max_length=1000)
    type: QuestionType
    position: int | None = Field(default=None, ge=0)
    required: bool = False
    choices: list[str] | None = Field(default=None, max_length=100)
    allow_multiple: bool = False


class CreateFormRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=5000)
    slug: str = Field(min_length=1, max_length=255, pattern=SLUG_PATTERN)
    questions: list[CreateQuestionRequest] = Field(default_factory=list)


class UpdateFormStatusRequest(BaseModel):
    status: FormStatus


class QuestionResponse(BaseModel):
    id: UUID
    form_id: UUID
    question_text: str
    type: QuestionType
    position: int
    required: bool
    choices: list[str] | None = None
    allow_multiple: bool = False


class FormResponse(BaseModel):
    id: UUID
    owner_id: UUID
    title: str
    description: str
    slug: str
    status: FormStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None
    questions: list[QuestionResponse] | None = None


class SubmitAnswerRequest(BaseModel):
    question_id: UUID
    answer: str | None = Field(default=None, max_length=10000)
    selected_choices: list[str] | None = Field(default=None, max_length=100)


class SubmitFormRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    email: EmailStr | None = None
    answers: list[SubmitAnswerRequest] = Field(default_factory=list)


class SubmitFormResponse(BaseModel):
    submission_id: UUID
    form_id: UUID
    created_at: datetime
    answers_count: int = Field(ge=0)


class AnswerResponse(BaseModel):
    id: UUID
    question_id: UUID
    question_text: str | None = None
    position: int | None = None
    answer: str | None = None
    selected_choices: list[str] | None = None
    created_at: datetime


class SubmissionResponse(BaseModel):
    id: UUID
    form_id: UUID
    name: str | None = None
    email: str | None = None
    user_ip: str | None = None
    created_at: datetime
    answers: list[AnswerResponse] | None = None


class ListSubmissionsResponse(BaseModel):
    items: list[SubmissionResponse]


class SubmittedResponse(BaseModel):
    submitted: bool
