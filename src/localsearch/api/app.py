"""FastAPI application streaming local search answers as server-sent events."""

from __future__ import annotations

from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from localsearch.api.schemas import HealthResponse, SearchRequest
from localsearch.config import Settings, get_settings
from localsearch.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from localsearch.services.events import event_to_json
from localsearch.services.pipeline import LocalSearchPipeline


@dataclass(frozen=True)
class AppDependencies:
    pipeline: LocalSearchPipeline


def _build_dependencies(settings: Settings) -> AppDependencies:
    from localsearch.services.factory import build_pipeline

    return AppDependencies(pipeline=build_pipeline(settings))


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await deps.pipeline.aclose()
            logger.info("pipeline.closed")

    app = FastAPI(title="Local Search API", version="0.1.0", lifespan=lifespan)
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        if request.headers.get("X-API-Key") != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_pipeline(request: Request) -> LocalSearchPipeline:
        return request.app.state.dependencies.pipeline

    @app.post("/search")
    async def search(
        payload: SearchRequest,
        request: Request,
        pipeline: LocalSearchPipeline = Depends(get_pipeline),
        _auth: None = Depends(require_api_key),
    ) -> StreamingResponse:
        history = [message.to_turn() for message in payload.history]
        correlation_id = request.state.correlation_id

        async def iter_sse() -> AsyncIterator[str]:
            bind_correlation_id(correlation_id)
            # Initial heartbeat to keep idle proxies open
            yield ": heartbeat\n\n"
            # a client disconnect cancels this generator and closes the pipeline stream
            events = pipeline.stream(
                payload.query,
                history,
                corpus_id=payload.corpus_id,
                focus_mode=payload.focus_mode,
            )
            async with aclosing(events):
                async for event in events:
                    yield f"data: {event_to_json(event)}\n\n"

        return StreamingResponse(
            iter_sse(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz", response_model=HealthResponse)
    async def healthcheck() -> HealthResponse:
        from localsearch import __version__

        return HealthResponse(status="ok", version=__version__, environment=settings.environment)

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return app
