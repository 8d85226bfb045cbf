import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from dotenv import load_dotenv
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from the working directory's .env
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from techforge.core.config import Settings, settings, validate_config
from techforge.core.container import Services, build_services
from techforge.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from techforge.core.logging import configure_logging
from techforge.core.middleware.request_id import RequestIdMiddleware
from techforge.api import admin_licenses, billing, download, health


def create_app(settings_obj: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI application.

    With ``services`` given (tests) the graph is used as-is; otherwise it is
    built from settings when the application starts.
    """
    cfg = settings_obj or (services.settings if services else settings)
    configure_logging(cfg.ENV)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = logging.getLogger("techforge")
        logger.info("Starting TechForge backend...")
        owned = getattr(app.state, "services", None) is None
        if owned:
            validate_config(strict=cfg.CONFIG_STRICT, settings_obj=cfg)
            app.state.services = build_services(cfg)
            app.state.services.db.create_all_tables()
        try:
            yield
        finally:
            if owned:
                app.state.services.db.dispose()
            logger.info("Stopping TechForge backend...")

    app = FastAPI(title="TechForge - Licensing Backend", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(billing.router)
    app.include_router(download.router)
    app.include_router(admin_licenses.router)
    app.include_router(health.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("techforge.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
