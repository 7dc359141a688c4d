from __future__ import annotations

from uuid import UUID

from forms_backend.api.handlers.deps import ApiDeps
from forms_backend.api.schemas import CreateFormRequest, FormResponse, QuestionResponse
from forms_backend.domain.dto import CreateFormCommand, QuestionDraft
from forms_backend.domain.models import Form, FormStatus, MultipleChoiceQuestion, QuestionSchema

COMPONENT_ID_CREATE = "api.create_form"
COMPONENT_ID_GET = "api.get_form"
COMPONENT_ID_STATUS = "api.set_form_status"


async def create_form_handler(*, request: CreateFormRequest, caller_id: UUID, api_deps: ApiDeps) -> FormResponse:
    cmd = CreateFormCommand(
        owner_id=caller_id,
        title=request.title,
        slug=request.slug,
        description=request.description,
        questions=tuple(
            QuestionDraft(
                text=question.question_text,
                type=question.type,
                required=question.required,
                position=question.position,
                choices=tuple(question.choices) if question.choices is not None else None,
                allow_multiple=question.allow_multiple,
            )
            for question in request.questions
        ),
    )
    form, schema = await api_deps.form_service.create_form(cmd)
    return form_response(form, schema)


async def get_form_handler(*, form_ref: str, api_deps: ApiDeps) -> FormResponse:
    form, schema = await api_deps.form_service.get_form(form_ref)
    return form_response(form, schema)


async def set_form_status_handler(
    *,
    form_ref: str,
    status: FormStatus,
    caller_id: UUID,
    api_deps: ApiDeps,
) -> FormResponse:
    form = await api_deps.form_service.set_status(form_ref=form_ref, caller_id=caller_id, status=status)
    return form_response(form, None)


def form_response(form: Form, schema: QuestionSchema | None) -> FormResponse:
    questions = None
    if schema is not None:
        questions = [
            QuestionResponse(
                id=question.question_id,
                form_id=question.form_id,
                question_text=question.text,
                type=question.type,
                position=question.position,
                required=question.required,
                choices=list(question.choices) if isinstance(question, MultipleChoiceQuestion) else None,
                allow_multiple=question.allow_multiple if isinstance(question, MultipleChoiceQuestion) else False,
            )
            for question in schema.questions
        ]
    return FormResponse(
        id=form.form_id,
        owner_id=form.owner_id,
        title=form.title,
        description=form.description,
        slug=form.slug,
        status=form.status,
        created_at=form.created_at,
        updated_at=form.updated_at,
        questions=questions,
    )
