from __future__ import annotations

from contextlib import asynccontextmanager
import asyncio
from collections.abc import Awaitable, Callable, Sequence
import logging

from fastapi import FastAPI, HTTPException, Request

from gallery.api.handlers.deps import ApiDeps
from gallery.api.handlers.images import get_image_handler, upload_image_handler
from gallery.api.handlers.messages import publish_message_handler
from gallery.api.schemas import (
    ErrorResponse,
    HealthResponse,
    ImageRecordResponse,
    PublishMessageRequest,
    PublishMessageResponse,
    ReadyResponse,
    UploadImageResponse,
    WorkerMetrics,
)
from gallery.workers.loop import WorkerLoop
from gallery.workers.runner import (
    WorkerRuntimeSettings,
    WorkerRuntimeState,
    run_worker_until_stopped,
    worker_runtime_settings_from_env,
)


def build_app(
    role: str,
    run_id: str,
    worker_loops: Sequence[WorkerLoop] = (),
    worker_runtime_settings: WorkerRuntimeSettings | None = None,
    api_deps: ApiDeps | None = None,
    on_startup: Callable[[], Awaitable[None]] | None = None,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> FastAPI:
    logger = logging.getLogger("runtime")
    worker_states: dict[str, WorkerRuntimeState] = {}
    worker_tasks: dict[str, asyncio.Task[None]] = {}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        del app
        stop_event = asyncio.Event()

        logger.info(
            "role started",
            extra={"role": role, "service": role, "run_id": run_id},
        )

        if on_startup is not None:
            await on_startup()

        settings = worker_runtime_settings or worker_runtime_settings_from_env()
        for worker_loop in worker_loops:
            state = WorkerRuntimeState()
            worker_states[worker_loop.role] = state
            worker_tasks[worker_loop.role] = asyncio.create_task(
                run_worker_until_stopped(
                    worker_loop=worker_loop,
                    role=worker_loop.role,
                    run_id=run_id,
                    stop_event=stop_event,
                    settings=settings,
                    logger=logger,
                    state=state,
                )
            )

        yield

        stop_event.set()
        if worker_tasks:
            await asyncio.gather(*worker_tasks.values())

        if on_shutdown is not None:
            await on_shutdown()

        logger.info(
            "role stopped",
            extra={"role": role, "service": role, "run_id": run_id},
        )

    app = FastAPI(title="photo-gallery-pipeline", version="0.1.0", lifespan=lifespan)

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", role=role, mode=_mode(api_deps))

    @app.get("/ready", response_model=ReadyResponse, tags=["System"])
    async def ready() -> ReadyResponse:
        metrics: dict[str, WorkerMetrics] = {}
        worker_loop_ready = True
        for worker_loop in worker_loops:
            state = worker_states.get(worker_loop.role) or WorkerRuntimeState()
            task = worker_tasks.get(worker_loop.role)
            worker_loop_ready = worker_loop_ready and state.started and task is not None and not task.done()
            metrics[worker_loop.role] = WorkerMetrics(
                stage=worker_loop.stage,
                started=state.started,
                stopped=state.stopped,
                ticks_total=state.ticks_total,
                batches_total=state.batches_total,
                idle_ticks_total=state.idle_ticks_total,
                errors_total=state.errors_total,
            )

        return ReadyResponse(
            status="ready",
            role=role,
            mode=_mode(api_deps),
            worker_loop_enabled=bool(worker_loops),
            worker_loop_ready=worker_loop_ready,
            worker_metrics=metrics,
        )

    @app.put(
        "/images/{key:path}",
        response_model=UploadImageResponse,
        responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        tags=["Images"],
    )
    async def upload_image(key: str, request: Request) -> UploadImageResponse:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        if not key.strip() or key.startswith("/"):
            raise HTTPException(status_code=400, detail="image key must be a non-empty relative path")
        return await upload_image_handler(
            key=key,
            payload=await request.body(),
            content_type=request.headers.get("content-type"),
            api_deps=api_deps,
        )

    @app.get(
        "/images/{image_id:path}",
        response_model=ImageRecordResponse,
        responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        tags=["Images"],
    )
    async def get_image(image_id: str) -> ImageRecordResponse:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        record = await get_image_handler(image_id=image_id, api_deps=api_deps)
        if record is None:
            raise HTTPException(status_code=404, detail="image not found")
        return record

    @app.post(
        "/messages",
        response_model=PublishMessageResponse,
        status_code=202,
        responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        tags=["Messages"],
    )
    async def publish_message(request: PublishMessageRequest) -> PublishMessageResponse:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        return await publish_message_handler(
            body=request.body,
            attributes=request.attributes,
            api_deps=api_deps,
        )

    return app


def _mode(api_deps: ApiDeps | None) -> str:
    if api_deps is None:
        return "empty"
    return "postgres" if api_deps.settings.database_url else "in-memory"
