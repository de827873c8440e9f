from __future__ import annotations

import logging

from gallery.domain.models import ProcessResult, RecordField, StatusUpdatePayload, failed_result
from gallery.workers.handlers.deps import WorkerDeps
from gallery.workers.handlers.records import apply_record_update

COMPONENT_ID = "worker.status.process_event"
logger = logging.getLogger("pipeline")


async def process_event(deps: WorkerDeps, *, payload: StatusUpdatePayload, message_id: str) -> ProcessResult:
    """Set status, reason and review date together in one conditional update."""
    policy = deps.settings.status_missing_record_policy
    record = await apply_record_update(
        deps.repository,
        image_id=payload.image_id,
        changes={
            RecordField.STATUS: payload.status,
            RecordField.REASON: payload.reason or deps.profile.default_reason,
            RecordField.REVIEW_DATE: payload.review_date or deps.now_iso(),
        },
        policy=policy,
    )
    if record is None:
        logger.warning(
            "status target record not found",
            extra={"stage": "status", "message_id": message_id, "image_id": payload.image_id},
        )
        return failed_result(
            stage="status",
            code="record_not_found",
            detail=f"image {payload.image_id} does not exist (policy={policy})",
            image_ids=(payload.image_id,),
        )

    logger.info(
        "status updated",
        extra={"stage": "status", "message_id": message_id, "image_id": payload.image_id},
    )
    return ProcessResult(
        disposition="applied",
        detail=f"status set to {payload.status}",
        image_ids=(payload.image_id,),
    )
