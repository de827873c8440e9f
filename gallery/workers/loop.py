from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging

from gallery.domain.contracts import MessageQueue
from gallery.domain.models import InboundMessage, ProcessResult
from gallery.domain.use_cases.cleanup import rejected_blobs_attribute

ProcessHandler = Callable[[InboundMessage], Awaitable[ProcessResult]]
logger = logging.getLogger("runtime")

DEFAULT_BATCH_SIZE = 5


@dataclass
class WorkerLoop:
    role: str
    stage: str
    queue: MessageQueue
    process: ProcessHandler
    batch_size: int = DEFAULT_BATCH_SIZE

    async def run_once(self) -> bool:
        messages = await self.queue.receive(max_messages=self.batch_size)
        if not messages:
            return False

        # Messages settle one by one; a failing message never blocks the rest.
        for message in messages:
            await self._settle(message)
        return True

    async def _settle(self, message: InboundMessage) -> None:
        extra = {
            "role": self.role,
            "stage": self.stage,
            "message_id": message.message_id,
        }
        try:
            result = await self.process(message)
        except Exception:
            logger.exception(
                "message processing failed",
                extra={**extra, "disposition": "retry", "receive_count": message.receive_count},
            )
            await self.queue.release(message_id=message.message_id)
            return

        if result.disposition == "escalated":
            await self.queue.dead_letter(
                message_id=message.message_id,
                reason=result.detail,
                attributes=rejected_blobs_attribute(result.escalated_blobs),
            )
        else:
            await self.queue.ack(message_id=message.message_id)

        log = logger.info if result.disposition == "applied" else logger.warning
        log(
            "message settled",
            extra={
                **extra,
                "disposition": result.disposition,
                "error_code": result.error_code,
                "image_id": ",".join(result.image_ids) or None,
            },
        )
