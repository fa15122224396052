from __future__ import annotations  # FastAPI server exposing the live interview backend

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import chat_router, realtime_router, router, stt_router
from config.settings import settings
from storage.migrate import migrate


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:  # Ensure tables exist before serving
    migrate(settings.DB_PATH)
    logger.info("Database ready at %s", settings.DB_PATH)
    yield


def create_app() -> FastAPI:  # Build the application with every router mounted
    application = FastAPI(title="Live Interview Agent API", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"]
    )
    application.include_router(router)
    application.include_router(realtime_router)
    application.include_router(chat_router)
    application.include_router(stt_router)
    return application


app = create_app()
