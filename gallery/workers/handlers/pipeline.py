from __future__ import annotations

from collections.abc import Mapping
import logging

from gallery.domain.classifier import classify_message
from gallery.domain.models import EventKind, InboundMessage, Malformed, ProcessResult, failed_result
from gallery.domain.validation import Dropped, Escalated, check_event
from gallery.workers.handlers.deps import WorkerDeps
from gallery.workers.handlers.router import EventRoute, route_for

COMPONENT_ID = "worker.pipeline.process_message"
logger = logging.getLogger("pipeline")


async def process_message(
    deps: WorkerDeps,
    *,
    message: InboundMessage,
    routes: Mapping[EventKind, EventRoute] | None = None,
) -> ProcessResult:
    """Classify, gate and route one inbound message to its transition handler."""
    classified = classify_message(message)
    if isinstance(classified, Malformed):
        logger.warning(
            "message not classified",
            extra={"stage": "classify", "message_id": message.message_id, "error_code": classified.code},
        )
        return failed_result(stage="classify", code=classified.code, detail=classified.detail)

    route = route_for(classified.kind, routes)
    if route is None:
        logger.warning(
            "no handler for message kind",
            extra={"stage": "classify", "message_id": message.message_id, "kind": str(classified.kind)},
        )
        return failed_result(stage="classify", code="unknown_kind", detail=f"no route for {classified.kind}")

    verdict = check_event(classified, profile=deps.profile)
    if isinstance(verdict, Dropped):
        logger.warning(
            "message failed validation",
            extra={
                "stage": route.stage,
                "message_id": message.message_id,
                "kind": str(classified.kind),
                "error_code": verdict.code,
            },
        )
        return failed_result(stage=route.stage, code=verdict.code, detail=verdict.detail)
    if isinstance(verdict, Escalated):
        logger.warning(
            "message escalated to cleanup",
            extra={
                "stage": route.stage,
                "message_id": message.message_id,
                "kind": str(classified.kind),
                "error_code": verdict.code,
            },
        )
        return failed_result(
            stage=route.stage,
            code=verdict.code,
            detail=verdict.detail,
            image_ids=tuple(blob.key for blob in verdict.blobs),
            escalated_blobs=verdict.blobs,
        )

    return await route.handle(deps, payload=verdict.payload, message_id=message.message_id)
