"""FastAPI application for the event pipeline.

Run with:
    uvicorn api.app:app --reload
"""
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import router
from db.connection import dispose_engine
from services.errors import (
    InvalidAmountError,
    InvalidAudienceError,
    InvalidSourceError,
    InvalidStageError,
    MissingParameterError,
    NotFoundError,
    PersistenceError,
    PipelineError,
)

load_dotenv()

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (InvalidStageError, 400),
    (InvalidAmountError, 400),
    (InvalidAudienceError, 400),
    (InvalidSourceError, 400),
    (MissingParameterError, 400),
    (PersistenceError, 500),
)


def _status_for(exc: PipelineError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


async def _pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"error": str(exc)})


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    await dispose_engine()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Event Pipeline", version="0.1.0", lifespan=_lifespan)
    app.add_exception_handler(PipelineError, _pipeline_error_handler)
    app.include_router(router)
    return app


app = create_app()
