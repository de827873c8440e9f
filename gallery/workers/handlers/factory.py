from __future__ import annotations

from gallery.domain.models import InboundMessage, ProcessResult
from gallery.workers.handlers import cleanup, notify, pipeline
from gallery.workers.handlers.deps import WorkerDeps
from gallery.workers.loop import ProcessHandler


def build_process_handler(role: str, deps: WorkerDeps) -> ProcessHandler:
    async def _pipeline(message: InboundMessage) -> ProcessResult:
        return await pipeline.process_message(deps, message=message)

    async def _cleanup(message: InboundMessage) -> ProcessResult:
        return await cleanup.process_message(deps, message=message)

    async def _notify(message: InboundMessage) -> ProcessResult:
        return await notify.process_message(deps, message=message)

    handlers: dict[str, ProcessHandler] = {
        "worker-pipeline": _pipeline,
        "worker-cleanup": _cleanup,
        "worker-notify": _notify,
    }
    handler = handlers.get(role)
    if handler is None:
        raise ValueError(f"No worker handler for role '{role}'")
    return handler
