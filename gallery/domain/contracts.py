from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from gallery.domain.dto import EmailMessage
from gallery.domain.models import BlobMetadata, ImageRecord, InboundMessage, RecordChange, RecordField

# Single-item conditional update semantics every record store must honour:
# attributes named in `changes` overwrite, attributes in `defaults` are written
# only where absent, everything else is left untouched.
RECORD_UPDATE_CONTRACT = "partial merge, last write wins per attribute"


@runtime_checkable
class ImageRepository(Protocol):
    """Key-value record store keyed by image id."""

    async def get_image(self, *, image_id: str) -> ImageRecord | None: ...

    # Create-or-merge. Used by ingestion and by create-on-demand policies.
    async def upsert_image(
        self,
        *,
        image_id: str,
        changes: Mapping[RecordField, object],
        defaults: Mapping[RecordField, object] | None = None,
    ) -> ImageRecord: ...

    # Conditional merge: returns None instead of creating when the id is absent.
    async def update_existing_image(
        self,
        *,
        image_id: str,
        changes: Mapping[RecordField, object],
    ) -> ImageRecord | None: ...


@runtime_checkable
class ChangeSink(Protocol):
    """Receives one change-feed signal per mutation that altered a record."""

    async def publish_change(self, change: RecordChange) -> None: ...


@runtime_checkable
class BlobStore(Protocol):
    """Blob storage addressed by (bucket, key)."""

    def put_object(self, *, bucket: str, key: str, payload: bytes, content_type: str) -> BlobMetadata: ...

    # Raises BlobNotFoundError when the object does not exist.
    def head_object(self, *, bucket: str, key: str) -> BlobMetadata: ...

    def exists(self, *, bucket: str, key: str) -> bool: ...

    # Raises BlobNotFoundError when the object does not exist.
    def delete_object(self, *, bucket: str, key: str) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    def send_email(self, message: EmailMessage) -> str | None: ...


@runtime_checkable
class MessageQueue(Protocol):
    """At-least-once queue with visibility release and dead-letter redrive."""

    name: str

    async def send(self, *, body: str, attributes: Mapping[str, str] | None = None) -> str: ...

    async def receive(self, *, max_messages: int) -> list[InboundMessage]: ...

    async def ack(self, *, message_id: str) -> None: ...

    async def release(self, *, message_id: str) -> None: ...

    async def dead_letter(
        self,
        *,
        message_id: str,
        reason: str,
        attributes: Mapping[str, str] | None = None,
    ) -> None: ...
