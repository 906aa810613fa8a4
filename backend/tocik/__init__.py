from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tocik.config import settings
from tocik.db import init_all_databases


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_all_databases(settings.tocik_data_dir)
    yield


def create_app() -> FastAPI:
    application = FastAPI(
        title="Tocik Flashcard Backend", version="0.1.0", lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from tocik.routers import decks, health, quiz

    application.include_router(health.router)
    application.include_router(
        decks.router, prefix="/decks", tags=["decks"]
    )
    application.include_router(
        quiz.router, prefix="/quiz", tags=["quiz"]
    )

    return application


app = create_app()
