"""
FastAPI application entry point for the prompt manager.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from promptdesk.config import Settings, get_settings
from promptdesk.dependencies import ClientFactory, build_client_factory
from promptdesk.errors import PromptDeskError
from promptdesk.routes import pages, router


def create_app(
    settings: Optional[Settings] = None,
    client_factory: Optional[ClientFactory] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(title="PromptDesk", version="0.1.0")
    app.state.settings = settings
    app.state.client_factory = client_factory or build_client_factory(settings)

    @app.middleware("http")
    async def persist_session_cookies(request: Request, call_next):
        response = await call_next(request)
        jar = getattr(request.state, "cookie_jar", None)
        if jar is not None:
            jar.apply(response)
        return response

    @app.exception_handler(PromptDeskError)
    async def prompt_desk_error(request: Request, exc: PromptDeskError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    app.include_router(pages)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
