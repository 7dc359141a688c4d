from __future__ import annotations

from uuid import UUID

from forms_backend.api.handlers.deps import ApiDeps
from forms_backend.api.schemas import (
    AnswerResponse,
    ListSubmissionsResponse,
    SubmissionResponse,
    SubmitFormRequest,
    SubmitFormResponse,
    SubmittedResponse,
)
from forms_backend.domain.dto import SubmitFormCommand
from forms_backend.domain.models import AnswerEntry, AnswerSubmission, FilledForm, RespondentMeta

COMPONENT_ID = "api.submit_form"
COMPONENT_ID_GET = "api.get_submission"
COMPONENT_ID_LIST = "api.list_submissions"
COMPONENT_ID_SUBMITTED = "api.has_submitted"


async def submit_form_handler(
    *,
    form_ref: str,
    request: SubmitFormRequest,
    client_ip: str | None,
    api_deps: ApiDeps,
) -> SubmitFormResponse:
    cmd = SubmitFormCommand(
        form_ref=form_ref,
        answers=AnswerSubmission(
            entries=tuple(
                AnswerEntry(
                    question_id=answer.question_id,
                    text=answer.answer,
                    selected_choices=tuple(answer.selected_choices) if answer.selected_choices is not None else None,
                )
                for answer in request.answers
            )
        ),
        respondent=RespondentMeta(name=request.name, email=request.email, user_ip=client_ip),
    )
    persisted = await api_deps.submission_service.submit(cmd)
    return SubmitFormResponse(
        submission_id=persisted.filled_form_id,
        form_id=persisted.form_id,
        created_at=persisted.created_at,
        answers_count=len(persisted.answers),
    )


async def get_submission_handler(*, submission_id: UUID, caller_id: UUID, api_deps: ApiDeps) -> SubmissionResponse:
    filled_form = await api_deps.submission_service.get_submission(submission_id=submission_id, caller_id=caller_id)
    return submission_response(filled_form, detailed=True)


async def list_submissions_handler(
    *,
    form_ref: str,
    caller_id: UUID,
    detailed: bool,
    api_deps: ApiDeps,
) -> ListSubmissionsResponse:
    items = await api_deps.submission_service.list_submissions(
        form_ref=form_ref,
        caller_id=caller_id,
        detailed=detailed,
    )
    return ListSubmissionsResponse(items=[submission_response(item, detailed=detailed) for item in items])


async def has_submitted_handler(*, form_ref: str, client_ip: str | None, api_deps: ApiDeps) -> SubmittedResponse:
    submitted = await api_deps.submission_service.has_submitted(form_ref=form_ref, client_ip=client_ip)
    return SubmittedResponse(submitted=submitted)


def submission_response(filled_form: FilledForm, *, detailed: bool) -> SubmissionResponse:
    answers = None
    if detailed:
        answers = [
            AnswerResponse(
                id=answer.answer_id,
                question_id=answer.question_id,
                question_text=answer.question_text,
                position=answer.position,
                answer=answer.text,
                selected_choices=list(answer.selected_choices) if answer.selected_choices is not None else None,
                created_at=answer.created_at,
            )
            for answer in filled_form.answers
        ]
    return SubmissionResponse(
        id=filled_form.filled_form_id,
        form_id=filled_form.form_id,
        name=filled_form.respondent.name,
        email=filled_form.respondent.email,
        user_ip=filled_form.respondent.user_ip,
        created_at=filled_form.created_at,
        answers=answers,
    )
