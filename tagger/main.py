# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tagger.config import Settings
from tagger.config import settings as default_settings
from tagger.middleware import BodySizeLimitMiddleware
from tagger.routes import upload
from tagger.tags import TagAssigner
from tagger.vision import ModelHandle, ModelLoadError

__all__ = ["app", "create_app"]

logger = logging.getLogger("uvicorn.warning")


def create_app(settings: Optional[Settings] = None, tag_assigner: Optional[TagAssigner] = None) -> FastAPI:
    """Builds the service application

    Args:
        settings: the service configuration, defaults to the one read from the environment
        tag_assigner: the hook called with the top prediction of each upload

    Returns:
        the ASGI application
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Warm-up: requests will retry the loading if this fails
        try:
            app.state.model.load()
        except ModelLoadError as e:
            logger.warning(f"Model loading failed at startup: {e}")
        yield

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.PROJECT_DESCRIPTION,
        debug=settings.DEBUG,
        version=settings.VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.model = ModelHandle(settings)
    app.state.tag_assigner = tag_assigner or TagAssigner()

    app.add_middleware(BodySizeLimitMiddleware, max_size=settings.MAX_UPLOAD_SIZE, detail=upload.FORM_ERROR)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        return PlainTextResponse(upload.FORM_ERROR, status_code=status.HTTP_400_BAD_REQUEST)

    app.include_router(upload.router, tags=["classification"])

    return app


app = create_app()
