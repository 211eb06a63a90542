"""LuthierGram - Backend API"""
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import router as api_router
from .api.schemas import APIResponse, error_code_for
from .config import CORS_ORIGINS, DATABASE_PATH
from .database import RecordStore
from .errors import StoreError
from .logging_setup import configure_logging

configure_logging()

logger = structlog.get_logger()


def create_app(database_path: str | Path = DATABASE_PATH) -> FastAPI:
    """Create the API application backed by the store at ``database_path``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the record store for the lifetime of the app."""
        logger.info("server_starting", version="0.1.0")
        app.state.store = await RecordStore.open(database_path)

        yield

        await app.state.store.close()
        logger.info("server_stopping")

    app = FastAPI(
        title="LuthierGram",
        description="Build, photo and post-schedule store for a luthier's social feed",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS for the browser front end
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        error_code, status_code = error_code_for(exc)
        logger.warning(
            "store_error",
            path=request.url.path,
            error_code=error_code.value,
            error=str(exc),
        )
        return JSONResponse(
            status_code=status_code,
            content=APIResponse.fail(str(exc), error_code).model_dump(mode="json"),
        )

    # API routes
    app.include_router(api_router)

    return app


app = create_app()
