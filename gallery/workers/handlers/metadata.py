from __future__ import annotations

import logging

from gallery.domain.models import MetadataUpdatePayload, ProcessResult, failed_result
from gallery.workers.handlers.deps import WorkerDeps
from gallery.workers.handlers.records import apply_record_update

COMPONENT_ID = "worker.metadata.process_event"
logger = logging.getLogger("pipeline")


async def process_event(deps: WorkerDeps, *, payload: MetadataUpdatePayload, message_id: str) -> ProcessResult:
    policy = deps.settings.metadata_missing_record_policy
    record = await apply_record_update(
        deps.repository,
        image_id=payload.image_id,
        changes={payload.field: payload.value},
        policy=policy,
    )
    if record is None:
        logger.warning(
            "metadata target record not found",
            extra={"stage": "metadata", "message_id": message_id, "image_id": payload.image_id},
        )
        return failed_result(
            stage="metadata",
            code="record_not_found",
            detail=f"image {payload.image_id} does not exist (policy={policy})",
            image_ids=(payload.image_id,),
        )

    logger.info(
        "metadata updated",
        extra={"stage": "metadata", "message_id": message_id, "image_id": payload.image_id},
    )
    return ProcessResult(
        disposition="applied",
        detail=f"{payload.field} updated",
        image_ids=(payload.image_id,),
    )
