"""
FastAPI application entry point for the eQSL backend.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from eqsl_backend.config import Settings, get_settings
from eqsl_backend.dependencies import build_catalog
from eqsl_backend.routes import router
from eqsl_backend.storage import CardStorageClient

logger = logging.getLogger(__name__)


class SinglePageFiles(StaticFiles):
    """
    Static files that answer unknown client-side routes with index.html.

    Missing paths with a file extension still return 404.
    """

    async def get_response(self, path: str, scope):
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as e:
            if e.status_code != 404 or os.path.splitext(path)[1]:
                raise
            return await super().get_response("index.html", scope)


def create_app(
    settings: Settings | None = None, storage: CardStorageClient | None = None
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="TW eQSL Backend (FastAPI)", version="0.1.0")
    app.state.settings = settings
    app.state.catalog = build_catalog(settings, storage)
    app.include_router(router, prefix=settings.api_prefix)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mounted last so API routes take precedence over static files.
    if settings.static_dir and os.path.isdir(settings.static_dir):
        app.mount(
            "/",
            SinglePageFiles(directory=settings.static_dir, html=True),
            name="static",
        )
        logger.info("Serving static files from %s", settings.static_dir)
    return app


app = create_app()
