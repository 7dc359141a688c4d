from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from forms_backend.api.handlers.deps import ApiDeps, resolve_caller_id, resolve_client_ip
from forms_backend.api.handlers.forms import create_form_handler, get_form_handler, set_form_status_handler
from forms_backend.api.handlers.submissions import (
    get_submission_handler,
    has_submitted_handler,
    list_submissions_handler,
    submit_form_handler,
)
from forms_backend.api.schemas import (
    CreateFormRequest,
    ErrorResponse,
    FormResponse,
    HealthResponse,
    ListSubmissionsResponse,
    ReadyResponse,
    SubmissionResponse,
    SubmitFormRequest,
    SubmitFormResponse,
    SubmittedResponse,
    UpdateFormStatusRequest,
)
from forms_backend.domain.error_taxonomy import http_status_for
from forms_backend.domain.errors import DomainError, SubmissionRejected, SubmitTimeoutError

SERVICE_NAME = "forms-backend"

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def build_app(
    run_id: str,
    api_deps: ApiDeps,
    *,
    mode: str = "memory",
    submit_timeout_seconds: float = 15,
    storage_ready: Callable[[], bool] | None = None,
    on_startup: Callable[[], Awaitable[None]] | None = None,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> FastAPI:
    logger = logging.getLogger("runtime")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        del app
        if on_startup is not None:
            await on_startup()

        logger.info(
            "service started",
            extra={"service": SERVICE_NAME, "run_id": run_id},
        )

        yield

        if on_shutdown is not None:
            await on_shutdown()

        logger.info(
            "service stopped",
            extra={"service": SERVICE_NAME, "run_id": run_id},
        )

    app = FastAPI(title=SERVICE_NAME, version="0.1.0", lifespan=lifespan)

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        del request
        status_code = http_status_for(exc.code)
        if status_code >= 500:
            logger.error(
                "request failed",
                exc_info=exc,
                extra={"service": SERVICE_NAME, "run_id": run_id, "error_code": exc.code},
            )
        body = ErrorResponse(detail=str(exc), code=exc.code)
        if isinstance(exc, SubmissionRejected):
            body = ErrorResponse(detail=str(exc), code=exc.code, question_id=exc.question_id, label=exc.label)
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        del request
        body = ErrorResponse(detail=_validation_detail(exc), code="validation_error")
        return JSONResponse(status_code=422, content=body.model_dump(mode="json", exclude_none=True))

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service=SERVICE_NAME, mode=mode)

    @app.get("/ready", response_model=ReadyResponse, tags=["System"])
    async def ready() -> ReadyResponse:
        is_ready = storage_ready() if storage_ready is not None else True
        return ReadyResponse(
            status="ready" if is_ready else "starting",
            service=SERVICE_NAME,
            mode=mode,
            storage_ready=is_ready,
        )

    @app.post("/forms", response_model=FormResponse, status_code=201, responses=ERROR_RESPONSES, tags=["Forms"])
    async def create_form(
        request: CreateFormRequest,
        x_user_id: str | None = Header(default=None),
    ) -> FormResponse:
        caller_id = resolve_caller_id(x_user_id)
        return await create_form_handler(request=request, caller_id=caller_id, api_deps=api_deps)

    @app.get("/forms/{form_ref}", response_model=FormResponse, responses=ERROR_RESPONSES, tags=["Forms"])
    async def get_form(form_ref: str) -> FormResponse:
        return await get_form_handler(form_ref=form_ref, api_deps=api_deps)

    @app.post("/forms/{form_ref}/status", response_model=FormResponse, responses=ERROR_RESPONSES, tags=["Forms"])
    async def set_form_status(
        form_ref: str,
        request: UpdateFormStatusRequest,
        x_user_id: str | None = Header(default=None),
    ) -> FormResponse:
        caller_id = resolve_caller_id(x_user_id)
        return await set_form_status_handler(
            form_ref=form_ref,
            status=request.status,
            caller_id=caller_id,
            api_deps=api_deps,
        )

    @app.post(
        "/forms/{form_ref}/submissions",
        response_model=SubmitFormResponse,
        status_code=201,
        responses={**ERROR_RESPONSES, 504: {"model": ErrorResponse}},
        tags=["Submissions"],
    )
    async def submit_form(form_ref: str, request: SubmitFormRequest, http_request: Request) -> SubmitFormResponse:
        try:
            # Expiry cancels the write; the open transaction rolls back.
            async with asyncio.timeout(submit_timeout_seconds):
                return await submit_form_handler(
                    form_ref=form_ref,
                    request=request,
                    client_ip=resolve_client_ip(http_request),
                    api_deps=api_deps,
                )
        except TimeoutError as exc:
            raise SubmitTimeoutError("submission timed out") from exc

    @app.get(
        "/forms/{form_ref}/submissions",
        response_model=ListSubmissionsResponse,
        responses=ERROR_RESPONSES,
        tags=["Submissions"],
    )
    async def list_submissions(
        form_ref: str,
        detailed: bool = Query(default=False),
        x_user_id: str | None = Header(default=None),
    ) -> ListSubmissionsResponse:
        caller_id = resolve_caller_id(x_user_id)
        return await list_submissions_handler(
            form_ref=form_ref,
            caller_id=caller_id,
            detailed=detailed,
            api_deps=api_deps,
        )

    @app.get(
        "/forms/{form_ref}/submitted",
        response_model=SubmittedResponse,
        responses=ERROR_RESPONSES,
        tags=["Submissions"],
    )
    async def has_submitted(form_ref: str, http_request: Request) -> SubmittedResponse:
        return await has_submitted_handler(
            form_ref=form_ref,
            client_ip=resolve_client_ip(http_request),
            api_deps=api_deps,
        )

    @app.get(
        "/submissions/{submission_id}",
        response_model=SubmissionResponse,
        responses=ERROR_RESPONSES,
        tags=["Submissions"],
    )
    async def get_submission(
        submission_id: UUID,
        x_user_id: str | None = Header(default=None),
    ) -> SubmissionResponse:
        caller_id = resolve_caller_id(x_user_id)
        return await get_submission_handler(submission_id=submission_id, caller_id=caller_id, api_deps=api_deps)

    return app


def _validation_detail(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "request is invalid"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}"
