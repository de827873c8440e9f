from __future__ import annotations

import logging

from gallery.domain.dto import ComposeNotificationCommand
from gallery.domain.errors import DomainValidationError
from gallery.domain.models import InboundMessage, ProcessResult, failed_result
from gallery.domain.use_cases.notification import changed_status, compose_notification
from gallery.transport.change_feed import decode_change
from gallery.workers.handlers.deps import WorkerDeps

COMPONENT_ID = "worker.notify.process_message"
logger = logging.getLogger("pipeline")


async def process_message(deps: WorkerDeps, *, message: InboundMessage) -> ProcessResult:
    try:
        change = decode_change(message.body)
    except DomainValidationError as exc:
        logger.warning(
            "change record not decoded",
            extra={"stage": "notify", "message_id": message.message_id, "error_code": "unparseable_payload"},
        )
        return failed_result(stage="notify", code="unparseable_payload", detail=str(exc))

    extra = {"stage": "notify", "message_id": message.message_id, "image_id": change.image_id}
    status = changed_status(change)
    if status is None:
        return failed_result(
            stage="notify",
            code="status_unchanged",
            detail=f"{change.event_name} without a status change",
            image_ids=(change.image_id,),
        )

    record = await deps.repository.get_image(image_id=change.image_id)
    if record is None:
        logger.warning("notification record not found", extra=extra)
        return failed_result(
            stage="notify",
            code="record_not_found",
            detail=f"image {change.image_id} does not exist",
            image_ids=(change.image_id,),
        )

    email = compose_notification(
        ComposeNotificationCommand(
            record=record,
            recipient=record.photographer_email or deps.settings.notify_default_recipient,
            sender=deps.settings.notify_sender,
            template=deps.profile.notification,
            default_reason=deps.profile.default_reason,
        )
    )
    try:
        delivery_id = deps.notifier.send_email(email)
    except Exception as exc:
        # The change is already durable; a lost email is not retried.
        logger.exception("notification send failed", extra={**extra, "error_code": "notification_failed"})
        return failed_result(
            stage="notify",
            code="notification_failed",
            detail=str(exc),
            image_ids=(change.image_id,),
        )

    logger.info("notification sent", extra=extra)
    return ProcessResult(
        disposition="applied",
        detail=f"notified {email.recipient} ({delivery_id or 'no receipt'})",
        image_ids=(change.image_id,),
    )
