from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from gallery.api.handlers.deps import ApiDeps
from gallery.clients.stub import InMemoryMessageQueue, StubBlobStore, StubNotifier
from gallery.domain.contracts import BlobStore, ImageRepository, Notifier
from gallery.domain.pipeline_profile import PipelineProfile, load_pipeline_profile
from gallery.repositories.postgres import AsyncpgPoolManager, PostgresImageRepository
from gallery.repositories.stub import InMemoryImageRepository
from gallery.roles import RuntimeRole
from gallery.settings import PipelineSettings, pipeline_settings_from_env
from gallery.transport.change_feed import QueueChangeSink
from gallery.workers.handlers.deps import WorkerDeps
from gallery.workers.handlers.factory import build_process_handler
from gallery.workers.loop import WorkerLoop
from gallery.workers.roles import (
    CHANGE_FEED_QUEUE,
    DEAD_LETTER_QUEUE,
    INBOUND_QUEUE,
    ROLE_TO_QUEUE,
    ROLE_TO_STAGE,
    RUNTIME_WORKER_ROLES,
)


@dataclass
class RuntimeContainer:
    settings: PipelineSettings
    profile: PipelineProfile
    repository: ImageRepository
    blobs: BlobStore
    notifier: Notifier
    queues: dict[str, InMemoryMessageQueue]
    api_deps: ApiDeps
    worker_loops: list[WorkerLoop]
    on_startup: Callable[[], Awaitable[None]] | None
    on_shutdown: Callable[[], Awaitable[None]] | None


def build_runtime_container(role: RuntimeRole, settings: PipelineSettings | None = None) -> RuntimeContainer:
    settings = settings or pipeline_settings_from_env()
    profile = load_pipeline_profile(file_path=settings.profile_path, metadata_profile=settings.metadata_profile)

    dead_letter_queue = InMemoryMessageQueue(name=DEAD_LETTER_QUEUE, max_receive_count=settings.max_receive_count)
    queues = {
        INBOUND_QUEUE: InMemoryMessageQueue(
            name=INBOUND_QUEUE,
            dead_letter_queue=dead_letter_queue,
            max_receive_count=settings.max_receive_count,
        ),
        DEAD_LETTER_QUEUE: dead_letter_queue,
        CHANGE_FEED_QUEUE: InMemoryMessageQueue(name=CHANGE_FEED_QUEUE, max_receive_count=settings.max_receive_count),
    }
    change_sink = QueueChangeSink(queue=queues[CHANGE_FEED_QUEUE])

    on_startup: Callable[[], Awaitable[None]] | None = None
    on_shutdown: Callable[[], Awaitable[None]] | None = None
    repository: ImageRepository
    if settings.database_url:
        pool_manager = AsyncpgPoolManager(dsn=settings.database_url)
        repository = PostgresImageRepository(
            pool_manager=pool_manager,
            table=settings.images_table,
            change_sink=change_sink,
        )
        on_startup = pool_manager.startup
        on_shutdown = pool_manager.shutdown
    else:
        repository = InMemoryImageRepository(change_sink=change_sink)

    blobs = StubBlobStore()
    notifier = StubNotifier()
    api_deps = ApiDeps(
        repository=repository,
        blobs=blobs,
        inbound_queue=queues[INBOUND_QUEUE],
        settings=settings,
    )

    worker_deps = WorkerDeps(
        repository=repository,
        blobs=blobs,
        notifier=notifier,
        profile=profile,
        settings=settings,
    )
    worker_loops = [
        WorkerLoop(
            role=worker_role,
            stage=ROLE_TO_STAGE[worker_role],
            queue=queues[ROLE_TO_QUEUE[worker_role]],
            process=build_process_handler(worker_role, worker_deps),
            batch_size=settings.batch_size,
        )
        for worker_role in RUNTIME_WORKER_ROLES[role.name]
    ]

    return RuntimeContainer(
        settings=settings,
        profile=profile,
        repository=repository,
        blobs=blobs,
        notifier=notifier,
        queues=queues,
        api_deps=api_deps,
        worker_loops=worker_loops,
        on_startup=on_startup,
        on_shutdown=on_shutdown,
    )
