import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recall.config import settings
from recall.db import init_all_databases

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_all_databases(settings.recall_data_dir)
    logger.info("Recall data directory: %s", settings.recall_data_dir)
    yield


def create_app() -> FastAPI:
    application = FastAPI(
        title="Recall Backend", version="0.1.0", lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from recall.routers import decks, generate, health, review

    application.include_router(health.router)
    application.include_router(
        generate.router, prefix="/generate", tags=["generate"]
    )
    application.include_router(
        decks.router, prefix="/decks", tags=["decks"]
    )
    application.include_router(
        review.router, prefix="/review", tags=["review"]
    )

    return application


app = create_app()
