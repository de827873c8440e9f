from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import StrEnum
from typing import Literal

from gallery.domain.error_taxonomy import ErrorCode, classify_error, resolve_stage_error
from gallery.domain.errors import DomainInvariantError


class ImageStatus(StrEnum):
    UNSET = "Unset"
    PASS = "Pass"
    REJECT = "Reject"


class EventKind(StrEnum):
    BLOB_CREATED = "BlobCreated"
    METADATA_UPDATE = "MetadataUpdateRequested"
    STATUS_UPDATE = "StatusUpdateRequested"


# Stored attribute names of an image record. Keep synchronized with
# ImageRecord fields below; `id` is the key and never an attribute.
class RecordField(StrEnum):
    UPLOAD_TIME = "upload_time"
    SIZE = "size"
    CONTENT_TYPE = "content_type"
    CAPTION = "caption"
    REVIEW_DATE = "review_date"
    PHOTOGRAPHER_NAME = "photographer_name"
    PHOTOGRAPHER_EMAIL = "photographer_email"
    DESCRIPTION = "description"
    LOCATION = "location"
    TAGS = "tags"
    PHOTOGRAPHER = "photographer"
    STATUS = "status"
    REASON = "reason"


class MissingRecordPolicy(StrEnum):
    SKIP = "skip"
    CREATE = "create"


class ChangeEventName(StrEnum):
    INSERT = "INSERT"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"


@dataclass(frozen=True)
class ImageRecord:
    id: str
    upload_time: str | None = None
    size: int | None = None
    content_type: str | None = None
    caption: str | None = None
    review_date: str | None = None
    photographer_name: str | None = None
    photographer_email: str | None = None
    description: str | None = None
    location: str | None = None
    tags: tuple[str, ...] | None = None
    photographer: str | None = None
    status: ImageStatus = ImageStatus.UNSET
    reason: str | None = None

    def to_attributes(self) -> dict[str, object]:
        attributes: dict[str, object] = {}
        for item in fields(self):
            if item.name == "id":
                continue
            value = getattr(self, item.name)
            if value is None:
                continue
            if item.name == RecordField.STATUS and value == ImageStatus.UNSET:
                continue
            attributes[item.name] = attribute_value(value)
        return attributes

    @classmethod
    def from_attributes(cls, image_id: str, attributes: dict[str, object]) -> ImageRecord:
        known = {item.name for item in fields(cls)} - {"id"}
        values: dict[str, object] = {key: value for key, value in attributes.items() if key in known}
        status_raw = values.pop(RecordField.STATUS, None)
        tags_raw = values.pop(RecordField.TAGS, None)
        size_raw = values.pop(RecordField.SIZE, None)
        return cls(
            id=image_id,
            status=_status_from_raw(status_raw),
            tags=tuple(str(tag) for tag in tags_raw) if isinstance(tags_raw, list | tuple) else None,
            size=size_raw if isinstance(size_raw, int) else None,
            **values,  # type: ignore[arg-type]
        )


def attribute_value(value: object) -> object:
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, StrEnum):
        return str(value)
    return value


def _status_from_raw(value: object) -> ImageStatus:
    if isinstance(value, str) and value in {item.value for item in ImageStatus}:
        return ImageStatus(value)
    return ImageStatus.UNSET


@dataclass(frozen=True)
class InboundMessage:
    message_id: str
    body: str
    attributes: dict[str, str] = field(default_factory=dict)
    receive_count: int = 0


@dataclass(frozen=True)
class BlobRef:
    bucket: str
    key: str


@dataclass(frozen=True)
class BlobMetadata:
    bucket: str
    key: str
    size: int
    content_type: str


@dataclass(frozen=True)
class ClassifiedEvent:
    kind: EventKind
    payload: dict[str, object]
    message_id: str


@dataclass(frozen=True)
class Malformed:
    code: ErrorCode
    detail: str
    message_id: str


@dataclass(frozen=True)
class BlobCreatedPayload:
    blobs: tuple[BlobRef, ...]


@dataclass(frozen=True)
class MetadataUpdatePayload:
    image_id: str
    field: RecordField
    value: str | tuple[str, ...]


@dataclass(frozen=True)
class StatusUpdatePayload:
    image_id: str
    status: ImageStatus
    reason: str | None = None
    review_date: str | None = None


@dataclass(frozen=True)
class RecordChange:
    event_name: ChangeEventName
    image_id: str
    old: dict[str, object] = field(default_factory=dict)
    new: dict[str, object] = field(default_factory=dict)


Outcome = Literal["applied", "dropped", "escalated", "ignored"]


@dataclass(frozen=True)
class ProcessResult:
    disposition: Outcome
    detail: str = ""
    error_code: ErrorCode | None = None
    image_ids: tuple[str, ...] = ()
    escalated_blobs: tuple[BlobRef, ...] = ()


def failed_result(
    *,
    stage: str,
    code: str,
    detail: str,
    image_ids: tuple[str, ...] = (),
    escalated_blobs: tuple[BlobRef, ...] = (),
) -> ProcessResult:
    error_code = resolve_stage_error(stage=stage, code=code)
    disposition = classify_error(error_code)
    if disposition == "retry":
        # Retryable failures travel as exceptions, never as results.
        raise DomainInvariantError(f"{stage}: {error_code} is not a terminal outcome ({detail})")
    return ProcessResult(
        disposition=disposition,
        detail=detail,
        error_code=error_code,
        image_ids=image_ids,
        escalated_blobs=escalated_blobs,
    )


def build_record_change(
    *,
    image_id: str,
    previous: dict[str, object] | None,
    current: dict[str, object],
) -> RecordChange | None:
    """Describe a mutation the way a change feed reports it; None for no-op writes."""
    if previous == current:
        return None
    return RecordChange(
        event_name=ChangeEventName.INSERT if previous is None else ChangeEventName.MODIFY,
        image_id=image_id,
        old=dict(previous or {}),
        new=dict(current),
    )
