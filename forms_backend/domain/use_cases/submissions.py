from __future__ import annotations

import ipaddress
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from forms_backend.domain.contracts import FormLookup, SchemaLookup, SubmissionStore
from forms_backend.domain.dto import SubmitFormCommand
from forms_backend.domain.errors import (
    FormClosedError,
    FormNotFoundError,
    ForbiddenError,
    StorageError,
    SubmissionNotFoundError,
    SubmissionRejected,
)
from forms_backend.domain.ids import new_filled_form_id
from forms_backend.domain.models import (
    AnswerSubmission,
    FilledForm,
    Form,
    QuestionSchema,
    RespondentMeta,
    ValidatedAnswerSet,
)
from forms_backend.domain.validation import validate_submission

COMPONENT_ID = "domain.submission.submit"

logger = logging.getLogger("forms_backend.submissions")

Validator = Callable[[QuestionSchema, AnswerSubmission], ValidatedAnswerSet]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def normalize_client_ip(value: str | None) -> str | None:
    """Return a canonical IP string, or None when `value` is not an address."""
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


@dataclass
class SubmissionService:
    forms: FormLookup
    schemas: SchemaLookup
    store: SubmissionStore
    validate: Validator = validate_submission
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def submit(self, cmd: SubmitFormCommand) -> FilledForm:
        form = await self.forms.get_by_slug_or_id(cmd.form_ref)
        if form is None:
            raise FormNotFoundError(f"form '{cmd.form_ref}' is not found")
        if not form.is_open:
            raise FormClosedError(f"form '{form.slug}' is closed for submissions")

        questions = await self.schemas.get_questions_by_form_id(form.form_id)
        schema = QuestionSchema(form_id=form.form_id, questions=tuple(questions))
        try:
            validated = self.validate(schema, cmd.answers)
        except SubmissionRejected as exc:
            logger.info(
                "submission rejected",
                extra={
                    "form_id": form.form_id,
                    "error_code": exc.code,
                    "question_id": exc.question_id,
                },
            )
            raise

        respondent = RespondentMeta(
            name=cmd.respondent.name,
            email=cmd.respondent.email,
            user_ip=normalize_client_ip(cmd.respondent.user_ip),
        )
        header = FilledForm(
            filled_form_id=new_filled_form_id(),
            form_id=form.form_id,
            created_at=self.clock(),
            respondent=respondent,
        )
        try:
            persisted = await self.store.write(filled_form=header, answers=validated)
        except StorageError as exc:
            logger.warning(
                "submission write failed",
                extra={
                    "form_id": form.form_id,
                    "submission_id": header.filled_form_id,
                    "error_code": exc.code,
                    "storage_step": exc.step,
                },
            )
            raise

        assert len(persisted.answers) == len(validated), "store returned a partial submission"
        logger.info(
            "submission accepted",
            extra={
                "form_id": form.form_id,
                "submission_id": persisted.filled_form_id,
                "answers_count": len(persisted.answers),
            },
        )
        return persisted

    async def get_submission(self, *, submission_id: UUID, caller_id: UUID) -> FilledForm:
        filled_form = await self.store.read_by_id(submission_id)
        if filled_form is None:
            raise SubmissionNotFoundError(f"submission {submission_id} is not found")
        form = await self.forms.get_by_slug_or_id(str(filled_form.form_id))
        if form is None:
            raise SubmissionNotFoundError(f"submission {submission_id} is not found")
        _require_owner(form, caller_id)
        return filled_form

    async def list_submissions(self, *, form_ref: str, caller_id: UUID, detailed: bool = False) -> list[FilledForm]:
        form = await self._require_form(form_ref)
        _require_owner(form, caller_id)
        return await self.store.read_by_form(form.form_id, detailed=detailed)

    async def has_submitted(self, *, form_ref: str, client_ip: str | None) -> bool:
        form = await self._require_form(form_ref)
        user_ip = normalize_client_ip(client_ip)
        if user_ip is None:
            return False
        return await self.store.has_submission_from(form_id=form.form_id, user_ip=user_ip)

    async def _require_form(self, form_ref: str) -> Form:
        form = await self.forms.get_by_slug_or_id(form_ref)
        if form is None:
            raise FormNotFoundError(f"form '{form_ref}' is not found")
        return form


def _require_owner(form: Form, caller_id: UUID) -> None:
    if form.owner_id != caller_id:
        raise ForbiddenError("caller does not own this form")
