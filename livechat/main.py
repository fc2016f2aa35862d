"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination

from livechat.config import get_settings
from livechat.exceptions import LiveChatError
from livechat.infra.logging_config import LoggingConfig
from livechat.routers.conversations_router import conversations_router
from livechat.routers.guest_chat_router import guest_chat_router
from livechat.routers.messages_router import messages_router

logger = logging.getLogger(__name__)


async def livechat_error_handler(request: Request, exc: LiveChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    else:
        logger.info(
            "%s %s rejected (%s): %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.detail,
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    LoggingConfig()

    app = FastAPI(title=settings.app_name, debug=testing)
    app.add_exception_handler(LiveChatError, livechat_error_handler)

    app.include_router(guest_chat_router)
    app.include_router(conversations_router)
    app.include_router(messages_router)

    @app.get("/health", tags=["System"])
    def health() -> dict:
        return {"status": "ok", "environment": settings.environment}

    add_pagination(app)
    return app


app = create_app()
