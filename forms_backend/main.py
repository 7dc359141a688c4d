from __future__ import annotations

import argparse
import logging
import os
import sys
import uuid
from dataclasses import replace

import uvicorn
from fastapi import FastAPI

from forms_backend.api.http_app import SERVICE_NAME, build_app
from forms_backend.logging_setup import configure_logging
from forms_backend.services.bootstrap import RuntimeContainer, build_runtime_container
from forms_backend.settings import AppSettings, settings_from_env


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Form submission service")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument(
        "--dry-run-startup",
        action="store_true",
        help="Validate startup and exit",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable code reload (dev mode)",
    )
    return parser.parse_args(argv)


def _build(settings: AppSettings, container: RuntimeContainer, run_id: str) -> FastAPI:
    return build_app(
        run_id=run_id,
        api_deps=container.api_deps,
        mode=container.mode,
        submit_timeout_seconds=settings.submit_timeout_seconds,
        storage_ready=container.storage_ready,
        on_startup=container.on_startup,
        on_shutdown=container.on_shutdown,
    )


def create_runtime_app() -> FastAPI:
    settings = settings_from_env()
    configure_logging(settings.log_level)
    run_id = str(uuid.uuid4())
    return _build(settings, build_runtime_container(settings), run_id)


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    settings = settings_from_env()
    if args.port is not None and args.port <= 0:
        sys.stderr.write(f"ERROR: invalid port {args.port}\n")
        return 2
    settings = replace(
        settings,
        host=args.host if args.host is not None else settings.host,
        port=args.port if args.port is not None else settings.port,
    )

    configure_logging(settings.log_level)
    run_id = str(uuid.uuid4())
    logger = logging.getLogger("runtime")

    container = build_runtime_container(settings)
    logger.info(
        "runtime initialized",
        extra={"service": SERVICE_NAME, "run_id": run_id},
    )

    if args.dry_run_startup:
        logger.info(
            "dry-run startup complete",
            extra={"service": SERVICE_NAME, "run_id": run_id},
        )
        return 0

    if args.reload:
        os.environ["APP_HOST"] = settings.host
        os.environ["APP_PORT"] = str(settings.port)
        uvicorn.run(
            "forms_backend.main:create_runtime_app",
            host=settings.host,
            port=settings.port,
            log_level="warning",
            reload=True,
            factory=True,
        )
    else:
        app = _build(settings, container, run_id)
        uvicorn.run(app, host=settings.host, port=settings.port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
