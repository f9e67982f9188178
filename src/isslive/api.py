"""HTTP API for the retained telemetry history.

All endpoints are read-only. Handlers are plain ``def`` functions so FastAPI
runs them in its threadpool, next to the feed thread that writes samples.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from isslive.context import AppContext
from isslive.query import QueryService
from isslive.schemas import ErrorOut, KeyOut, KeySeriesOut, LatestOut
from isslive.store import KeyNotFound, StorageUnavailable

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Telemetry"])


def get_query_service(request: Request) -> QueryService:
    return request.app.state.context.query


@router.get("/data", response_model=list[KeySeriesOut], responses={500: {"model": ErrorOut}})
def get_all_data(query: QueryService = Depends(get_query_service)):
    """All retained samples grouped by key."""
    return query.data()


@router.get(
    "/data/{key}",
    response_model=KeySeriesOut,
    responses={404: {"model": ErrorOut}, 500: {"model": ErrorOut}},
)
def get_key_data(key: str, query: QueryService = Depends(get_query_service)):
    """Retained samples for one key, newest first."""
    return query.data_for_key(key)


@router.get("/latest", response_model=dict[str, LatestOut], responses={500: {"model": ErrorOut}})
def get_latest(query: QueryService = Depends(get_query_service)):
    """Most recent sample for each key."""
    return query.latest()


@router.get("/keys", response_model=list[KeyOut], responses={500: {"model": ErrorOut}})
def get_keys(query: QueryService = Depends(get_query_service)):
    """Stored keys with their metadata."""
    return query.keys()


async def _key_not_found(request: Request, exc: KeyNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def _storage_unavailable(request: Request, exc: StorageUnavailable) -> JSONResponse:
    logger.error("Storage error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app(context: AppContext) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        context.start_ingest()
        try:
            yield
        finally:
            context.ingest.stop()

    app = FastAPI(
        title="ISS Live Telemetry History API",
        description="Recent per-parameter history of the ISS Live telemetry feed.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.context = context
    app.include_router(router)
    app.add_exception_handler(KeyNotFound, _key_not_found)
    app.add_exception_handler(StorageUnavailable, _storage_unavailable)
    return app
