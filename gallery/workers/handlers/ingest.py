from __future__ import annotations

import logging

from gallery.domain.models import BlobCreatedPayload, ProcessResult, RecordField
from gallery.workers.handlers.deps import WorkerDeps

COMPONENT_ID = "worker.ingest.process_event"
logger = logging.getLogger("pipeline")


async def process_event(deps: WorkerDeps, *, payload: BlobCreatedPayload, message_id: str) -> ProcessResult:
    """Record size and content type of every created blob.

    A failed metadata read propagates so the message is redelivered; after
    the queue's receive limit it lands on the dead-letter queue and cleanup
    takes over.
    """
    image_ids: list[str] = []
    for blob in payload.blobs:
        metadata = deps.blobs.head_object(bucket=blob.bucket, key=blob.key)
        await deps.repository.upsert_image(
            image_id=blob.key,
            changes={
                RecordField.SIZE: metadata.size,
                RecordField.CONTENT_TYPE: metadata.content_type,
            },
            # Written only on first ingestion of a key.
            defaults={RecordField.UPLOAD_TIME: deps.now_iso()},
        )
        image_ids.append(blob.key)
        logger.info(
            "image ingested",
            extra={
                "stage": "ingest",
                "message_id": message_id,
                "image_id": blob.key,
            },
        )

    return ProcessResult(
        disposition="applied",
        detail=f"ingested {len(image_ids)} blob(s)",
        image_ids=tuple(image_ids),
    )
