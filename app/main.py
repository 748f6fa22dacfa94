"""Application entrypoint for the Decision Copilot service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from app.core.config import settings
from app.dependencies import get_event_sink, get_llm_provider, get_store
from app.repositories.redis_store import RedisRunStore
from app.routers import decisions
from app.schemas.runs import StoreHealthResponse
from app.telemetry import collect_prometheus_metrics, configure_metrics, shutdown_metrics


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_metrics()
    yield
    if get_llm_provider.cache_info().currsize:
        await get_llm_provider().close()
    if get_event_sink.cache_info().currsize:
        get_event_sink().close()
    shutdown_metrics()


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    logging.getLogger("app").setLevel(settings.log_level.upper())

    app = FastAPI(
        title="Decision Copilot",
        description="Runs risk, reversibility and people lenses over a decision and synthesizes a brief.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(decisions.router)

    @app.get("/healthz", tags=["health"])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/healthz/store", tags=["health"], response_model=StoreHealthResponse)
    def store_healthcheck(store: RedisRunStore = Depends(get_store)) -> StoreHealthResponse:
        store.ping()
        return StoreHealthResponse(
            status="ok" if store.backend == "redis" else "degraded",
            backend=store.backend,
        )

    if settings.otel_enabled and settings.otel_exporter.lower().strip() == "prometheus":

        @app.get("/metrics", tags=["metrics"])
        def metrics_endpoint() -> PlainTextResponse:
            payload, content_type = collect_prometheus_metrics()
            return PlainTextResponse(payload, media_type=content_type)

    return app


app = create_app()
