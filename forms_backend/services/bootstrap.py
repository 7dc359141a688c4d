from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from forms_backend.api.handlers.deps import ApiDeps
from forms_backend.domain.contracts import FormRepository, SubmissionStore
from forms_backend.domain.use_cases.forms import FormService
from forms_backend.domain.use_cases.submissions import SubmissionService
from forms_backend.repositories.postgres import AsyncpgPoolManager, PostgresFormRepository, PostgresSubmissionStore
from forms_backend.repositories.stub import InMemoryFormRepository, InMemorySubmissionStore
from forms_backend.settings import AppSettings


@dataclass
class RuntimeContainer:
    mode: str
    forms: FormRepository
    store: SubmissionStore
    form_service: FormService
    submission_service: SubmissionService
    api_deps: ApiDeps
    storage_ready: Callable[[], bool]
    on_startup: Callable[[], Awaitable[None]] | None
    on_shutdown: Callable[[], Awaitable[None]] | None


def build_runtime_container(settings: AppSettings) -> RuntimeContainer:
    on_startup: Callable[[], Awaitable[None]] | None = None
    on_shutdown: Callable[[], Awaitable[None]] | None = None
    forms: FormRepository
    store: SubmissionStore
    if settings.database_url:
        pool_manager = AsyncpgPoolManager(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=max(settings.db_pool_min_size, settings.db_pool_max_size),
            command_timeout=settings.db_command_timeout_seconds,
        )
        forms = PostgresFormRepository(pool_manager=pool_manager)
        store = PostgresSubmissionStore(pool_manager=pool_manager)
        on_startup = pool_manager.startup
        on_shutdown = pool_manager.shutdown
        mode = "postgres"

        def storage_ready() -> bool:
            return pool_manager.pool is not None

    else:
        memory_forms = InMemoryFormRepository()
        forms = memory_forms
        store = InMemorySubmissionStore(forms=memory_forms)
        mode = "memory"

        def storage_ready() -> bool:
            return True

    form_service = FormService(forms=forms)
    submission_service = SubmissionService(forms=forms, schemas=forms, store=store)
    api_deps = ApiDeps(
        forms=forms,
        store=store,
        form_service=form_service,
        submission_service=submission_service,
    )
    return RuntimeContainer(
        mode=mode,
        forms=forms,
        store=store,
        form_service=form_service,
        submission_service=submission_service,
        api_deps=api_deps,
        storage_ready=storage_ready,
        on_startup=on_startup,
        on_shutdown=on_shutdown,
    )
