from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Request

from forms_backend.domain.contracts import FormRepository, SubmissionStore
from forms_backend.domain.errors import UnauthenticatedError
from forms_backend.domain.ids import parse_uuid
from forms_backend.domain.use_cases.forms import FormService
from forms_backend.domain.use_cases.submissions import SubmissionService

CALLER_HEADER = "X-User-Id"


@dataclass(frozen=True)
class ApiDeps:
    forms: FormRepository
    store: SubmissionStore
    form_service: FormService
    submission_service: SubmissionService


def resolve_caller_id(header_value: str | None) -> UUID:
    """Caller identity arrives pre-resolved by the auth collaborator."""
    if not header_value:
        raise UnauthenticatedError("caller identity is required")
    caller_id = parse_uuid(header_value)
    if caller_id is None:
        raise UnauthenticatedError("caller identity is malformed")
    return caller_id


def resolve_client_ip(request: Request) -> str | None:
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", maxsplit=1)[0].strip()
    if request.client is not None:
        return request.client.host
    return None
