from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from forms_backend.domain.contracts import FormRepository
from forms_backend.domain.dto import CreateFormCommand, QuestionDraft
from forms_backend.domain.errors import DomainValidationError, ForbiddenError, FormNotFoundError
from forms_backend.domain.ids import new_form_id, new_question_id, parse_uuid
from forms_backend.domain.models import (
    BasicQuestion,
    Form,
    FormStatus,
    MultipleChoiceQuestion,
    Question,
    QuestionSchema,
    QuestionType,
)

COMPONENT_ID_CREATE = "domain.form.create"
COMPONENT_ID_STATUS = "domain.form.set_status"

logger = logging.getLogger("forms_backend.forms")


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def build_question(*, form_id: UUID, draft: QuestionDraft, position: int) -> Question:
    if draft.type == QuestionType.BASIC:
        if draft.choices:
            raise DomainValidationError("basic questions cannot declare choices")
        return BasicQuestion(
            question_id=new_question_id(),
            form_id=form_id,
            text=draft.text,
            position=position,
            required=draft.required,
        )
    return MultipleChoiceQuestion(
        question_id=new_question_id(),
        form_id=form_id,
        text=draft.text,
        position=position,
        choices=tuple(draft.choices or ()),
        allow_multiple=draft.allow_multiple,
        required=draft.required,
    )


@dataclass
class FormService:
    forms: FormRepository
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def create_form(self, cmd: CreateFormCommand) -> tuple[Form, QuestionSchema]:
        # Form references that parse as a UUID are looked up by id only.
        if parse_uuid(cmd.slug) is not None:
            raise DomainValidationError(f"slug '{cmd.slug}' must not look like a form id")
        form_id = new_form_id()
        now = self.clock()
        # Drafts without an explicit position are placed in submission order.
        questions = [
            build_question(
                form_id=form_id,
                draft=draft,
                position=draft.position if draft.position is not None else index + 1,
            )
            for index, draft in enumerate(cmd.questions)
        ]
        schema = QuestionSchema(form_id=form_id, questions=tuple(questions))
        form = Form(
            form_id=form_id,
            owner_id=cmd.owner_id,
            title=cmd.title,
            description=cmd.description,
            slug=cmd.slug,
            status=FormStatus.OPEN,
            created_at=now,
            updated_at=now,
        )
        persisted = await self.forms.create_form(form=form, questions=list(schema.questions))
        logger.info("form created", extra={"form_id": persisted.form_id})
        return persisted, schema

    async def get_form(self, form_ref: str) -> tuple[Form, QuestionSchema]:
        form = await self.forms.get_by_slug_or_id(form_ref)
        if form is None:
            raise FormNotFoundError(f"form '{form_ref}' is not found")
        questions = await self.forms.get_questions_by_form_id(form.form_id)
        return form, QuestionSchema(form_id=form.form_id, questions=tuple(questions))

    async def set_status(self, *, form_ref: str, caller_id: UUID, status: FormStatus) -> Form:
        form = await self.forms.get_by_slug_or_id(form_ref)
        if form is None:
            raise FormNotFoundError(f"form '{form_ref}' is not found")
        if form.owner_id != caller_id:
            raise ForbiddenError("caller does not own this form")
        updated = await self.forms.set_status(form_id=form.form_id, status=status)
        if updated is None:
            raise FormNotFoundError(f"form '{form_ref}' is not found")
        logger.info("form status changed", extra={"form_id": form.form_id})
        return updated
