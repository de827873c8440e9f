from __future__ import annotations

import logging

from gallery.domain.dto import ExtractCleanupTargetsCommand
from gallery.domain.errors import BlobNotFoundError
from gallery.domain.models import InboundMessage, ProcessResult, failed_result
from gallery.domain.use_cases.cleanup import extract_cleanup_targets
from gallery.workers.handlers.deps import WorkerDeps

COMPONENT_ID = "worker.cleanup.process_message"
logger = logging.getLogger("pipeline")


async def process_message(deps: WorkerDeps, *, message: InboundMessage) -> ProcessResult:
    """Delete the blobs a dead-lettered message refers to.

    Absent blobs are a no-op, so repeated delivery is harmless. Storage
    failures other than absence propagate and the message is retried.
    """
    targets = extract_cleanup_targets(
        ExtractCleanupTargetsCommand(message=message, default_bucket=deps.settings.images_bucket)
    )
    if not targets.blobs:
        logger.warning(
            "no cleanup target found",
            extra={"stage": "cleanup", "message_id": message.message_id},
        )
        return failed_result(stage="cleanup", code="unparseable_payload", detail="no blob reference in message")
    if targets.strategy == "heuristic":
        logger.warning(
            "cleanup targets found by pattern search",
            extra={"stage": "cleanup", "message_id": message.message_id},
        )

    deleted: list[str] = []
    for blob in targets.blobs:
        extra = {"stage": "cleanup", "message_id": message.message_id, "image_id": blob.key}
        if not deps.blobs.exists(bucket=blob.bucket, key=blob.key):
            logger.info("blob already absent", extra=extra)
            continue
        try:
            deps.blobs.delete_object(bucket=blob.bucket, key=blob.key)
        except BlobNotFoundError:
            # Removed between the existence check and the delete.
            logger.info("blob already absent", extra=extra)
            continue
        deleted.append(blob.key)
        logger.info("blob deleted", extra=extra)

    if not deleted:
        return failed_result(
            stage="cleanup",
            code="blob_not_found",
            detail="no target blob exists",
            image_ids=tuple(blob.key for blob in targets.blobs),
        )
    return ProcessResult(
        disposition="applied",
        detail=f"deleted {len(deleted)} blob(s) via {targets.strategy} extraction",
        image_ids=tuple(deleted),
    )
