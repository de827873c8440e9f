from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
import logging

from gallery.domain.dto import EmailMessage
from gallery.domain.errors import BlobNotFoundError
from gallery.domain.ids import new_message_id
from gallery.domain.models import BlobMetadata, InboundMessage

DEFAULT_MAX_RECEIVE_COUNT = 3
logger = logging.getLogger("runtime")


@dataclass
class StubBlobStore:
    objects: dict[tuple[str, str], tuple[bytes, str]] = field(default_factory=dict)
    deletes: list[tuple[str, str]] = field(default_factory=list)

    def put_object(self, *, bucket: str, key: str, payload: bytes, content_type: str) -> BlobMetadata:
        self.objects[(bucket, key)] = (payload, content_type)
        return BlobMetadata(bucket=bucket, key=key, size=len(payload), content_type=content_type)

    def head_object(self, *, bucket: str, key: str) -> BlobMetadata:
        stored = self.objects.get((bucket, key))
        if stored is None:
            raise BlobNotFoundError(f"blob not found: {bucket}/{key}")
        payload, content_type = stored
        return BlobMetadata(bucket=bucket, key=key, size=len(payload), content_type=content_type)

    def exists(self, *, bucket: str, key: str) -> bool:
        return (bucket, key) in self.objects

    def delete_object(self, *, bucket: str, key: str) -> None:
        if (bucket, key) not in self.objects:
            raise BlobNotFoundError(f"blob not found: {bucket}/{key}")
        del self.objects[(bucket, key)]
        self.deletes.append((bucket, key))


@dataclass
class StubNotifier:
    sent: list[EmailMessage] = field(default_factory=list)

    def send_email(self, message: EmailMessage) -> str | None:
        self.sent.append(message)
        return f"email:{len(self.sent)}"


@dataclass
class InMemoryMessageQueue:
    """At-least-once queue with a receive-count redrive to a dead-letter queue.

    A received message stays in flight until it is acknowledged, released
    back to the queue, or dead-lettered explicitly. A visible message that has
    already been received ``max_receive_count`` times is moved to the
    dead-letter queue instead of being delivered again, or discarded with an
    error log when the queue has none.
    """

    name: str
    dead_letter_queue: InMemoryMessageQueue | None = None
    max_receive_count: int = DEFAULT_MAX_RECEIVE_COUNT
    visible: deque[InboundMessage] = field(default_factory=deque)
    in_flight: dict[str, InboundMessage] = field(default_factory=dict)
    acked: list[str] = field(default_factory=list)
    dead_lettered: dict[str, str] = field(default_factory=dict)

    async def send(self, *, body: str, attributes: Mapping[str, str] | None = None) -> str:
        message = InboundMessage(
            message_id=new_message_id(),
            body=body,
            attributes=dict(attributes or {}),
        )
        self.visible.append(message)
        return message.message_id

    async def receive(self, *, max_messages: int) -> list[InboundMessage]:
        received: list[InboundMessage] = []
        while self.visible and len(received) < max_messages:
            message = self.visible.popleft()
            if message.receive_count >= self.max_receive_count:
                await self._redrive(message, reason="max receive count exceeded")
                continue
            delivered = replace(message, receive_count=message.receive_count + 1)
            self.in_flight[delivered.message_id] = delivered
            received.append(delivered)
        return received

    async def ack(self, *, message_id: str) -> None:
        if self.in_flight.pop(message_id, None) is not None:
            self.acked.append(message_id)

    async def release(self, *, message_id: str) -> None:
        message = self.in_flight.pop(message_id, None)
        if message is not None:
            self.visible.append(message)

    async def dead_letter(
        self,
        *,
        message_id: str,
        reason: str,
        attributes: Mapping[str, str] | None = None,
    ) -> None:
        message = self.in_flight.pop(message_id, None)
        if message is None:
            return
        if attributes:
            message = replace(message, attributes={**message.attributes, **attributes})
        await self._redrive(message, reason=reason)

    def depth(self) -> int:
        return len(self.visible) + len(self.in_flight)

    async def _redrive(self, message: InboundMessage, *, reason: str) -> None:
        self.dead_lettered[message.message_id] = reason
        if self.dead_letter_queue is None:
            # Terminal queue: the message is discarded.
            logger.error(
                "message discarded",
                extra={"message_id": message.message_id, "receive_count": message.receive_count},
            )
            return
        # The dead-letter copy keeps its id and starts a fresh receive count.
        self.dead_letter_queue.visible.append(replace(message, receive_count=0))
