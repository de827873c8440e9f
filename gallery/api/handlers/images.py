from __future__ import annotations

import logging

from gallery.api.handlers.deps import ApiDeps
from gallery.api.schemas import ImageRecordResponse, UploadImageResponse
from gallery.transport.object_events import object_created_notification, topic_envelope

COMPONENT_ID_UPLOAD = "api.upload_image"
COMPONENT_ID_GET = "api.get_image"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

logger = logging.getLogger("runtime")


async def upload_image_handler(
    *,
    key: str,
    payload: bytes,
    content_type: str | None,
    api_deps: ApiDeps,
) -> UploadImageResponse:
    """Store the blob, then announce it the way the bucket notification does."""
    metadata = api_deps.blobs.put_object(
        bucket=api_deps.settings.images_bucket,
        key=key,
        payload=payload,
        content_type=content_type or DEFAULT_CONTENT_TYPE,
    )
    message_id = await api_deps.inbound_queue.send(body=topic_envelope(object_created_notification(metadata)))
    logger.info("image uploaded", extra={"image_id": key, "message_id": message_id})
    return UploadImageResponse(
        image_id=key,
        bucket=metadata.bucket,
        size=metadata.size,
        content_type=metadata.content_type,
        message_id=message_id,
    )


async def get_image_handler(*, image_id: str, api_deps: ApiDeps) -> ImageRecordResponse | None:
    record = await api_deps.repository.get_image(image_id=image_id)
    if record is None:
        return None
    return ImageRecordResponse(
        id=record.id,
        upload_time=record.upload_time,
        size=record.size,
        content_type=record.content_type,
        caption=record.caption,
        review_date=record.review_date,
        photographer_name=record.photographer_name,
        photographer_email=record.photographer_email,
        description=record.description,
        location=record.location,
        tags=list(record.tags) if record.tags is not None else None,
        photographer=record.photographer,
        status=str(record.status),
        reason=record.reason,
    )
