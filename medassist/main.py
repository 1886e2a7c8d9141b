from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from medassist.db.init_db import init_db
from medassist.db.session import SessionLocal
from medassist.errors import AppError
from medassist.logging_config import configure_app_logging
from medassist.routers import admin, chat, health, users
from medassist.security.config import load_security_config
from medassist.security.dependencies import enforce_security
from medassist.services import build_services
from medassist.settings import get_settings

logger = logging.getLogger(__name__)


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "message": exc.public_message})


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg')}" if where else str(first.get("msg", "Invalid request body"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_request", "message": message},
    )


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        app.state.services = build_services(settings, SessionLocal, app.state.security_config)
        logger.info("Services ready (policy backend=%s, model=%s)", settings.policy_backend, settings.llm_model)

        yield

        # Shutdown
        app.state.services.shutdown()

    # Global dependency: every route goes through the configured security rules.
    app = FastAPI(dependencies=[Depends(enforce_security)], lifespan=lifespan)

    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(chat.router)
    app.include_router(admin.router)

    return app


app = create_app()
