from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TypeGuard

from gallery.domain.error_taxonomy import ErrorCode
from gallery.domain.models import (
    BlobCreatedPayload,
    BlobRef,
    ClassifiedEvent,
    EventKind,
    ImageStatus,
    MetadataUpdatePayload,
    RecordField,
    StatusUpdatePayload,
)
from gallery.domain.pipeline_profile import PipelineProfile, resolve_metadata_field

COMPONENT_ID = "domain.event.validate"

TypedPayload = BlobCreatedPayload | MetadataUpdatePayload | StatusUpdatePayload


@dataclass(frozen=True)
class Accepted:
    kind: EventKind
    payload: TypedPayload


@dataclass(frozen=True)
class Dropped:
    code: ErrorCode
    detail: str


@dataclass(frozen=True)
class Escalated:
    code: ErrorCode
    detail: str
    blobs: tuple[BlobRef, ...]


GateVerdict = Accepted | Dropped | Escalated


def extension_of(key: str) -> str:
    return PurePosixPath(key).suffix.lower()


def check_event(event: ClassifiedEvent, *, profile: PipelineProfile) -> GateVerdict:
    """Apply the per-kind field and enum checks; never raises."""
    check = _CHECKS.get(event.kind)
    if check is None:
        return Dropped(code="unknown_kind", detail=f"no validation rules for kind {event.kind}")
    return check(event.payload, profile)


def _check_blob_created(payload: dict[str, object], profile: PipelineProfile) -> GateVerdict:
    blobs_raw = payload.get("blobs")
    if not isinstance(blobs_raw, list) or not blobs_raw:
        return Dropped(code="missing_required_field", detail="blob event has no blobs")

    blobs: list[BlobRef] = []
    for item in blobs_raw:
        if not isinstance(item, dict):
            return Dropped(code="missing_required_field", detail="blob reference must be an object")
        bucket = item.get("bucket")
        key = item.get("key")
        if not _non_empty_str(bucket):
            return Dropped(code="missing_required_field", detail="blob bucket is required")
        if not _non_empty_str(key):
            return Dropped(code="missing_required_field", detail="blob key is required")
        blobs.append(BlobRef(bucket=bucket, key=key))

    rejected = tuple(blob for blob in blobs if extension_of(blob.key) not in profile.allowed_extensions)
    if rejected:
        # The blob is already stored, so it needs an active delete rather than a drop.
        names = ", ".join(f"{blob.key} ({extension_of(blob.key) or '<none>'})" for blob in rejected)
        return Escalated(
            code="disallowed_extension",
            detail=f"invalid file extension: {names}",
            blobs=rejected,
        )
    return Accepted(kind=EventKind.BLOB_CREATED, payload=BlobCreatedPayload(blobs=tuple(blobs)))


def _check_metadata_update(payload: dict[str, object], profile: PipelineProfile) -> GateVerdict:
    image_id = payload.get("id")
    field_name = payload.get("field")
    value = payload.get("value")
    if not _non_empty_str(image_id):
        return Dropped(code="missing_required_field", detail="metadata update requires id")
    if not _non_empty_str(field_name):
        return Dropped(code="missing_required_field", detail="metadata update requires a field name")

    field = resolve_metadata_field(field_name)
    if field is None or field not in profile.metadata_fields:
        return Dropped(
            code="invalid_enum_value",
            detail=f"metadata field '{field_name}' is not allowed in profile {profile.metadata_profile}",
        )

    normalized = _normalize_metadata_value(field, value)
    if normalized is None:
        return Dropped(code="missing_required_field", detail=f"metadata update for {field} requires a value")

    return Accepted(
        kind=EventKind.METADATA_UPDATE,
        payload=MetadataUpdatePayload(image_id=image_id, field=field, value=normalized),
    )


def _check_status_update(payload: dict[str, object], profile: PipelineProfile) -> GateVerdict:
    image_id = payload.get("id")
    status = payload.get("status")
    if not _non_empty_str(image_id):
        return Dropped(code="missing_required_field", detail="status update requires id")
    if not _non_empty_str(status):
        return Dropped(code="missing_required_field", detail="status update requires status")
    if status not in profile.allowed_statuses:
        allowed = ", ".join(profile.allowed_statuses)
        return Dropped(code="invalid_enum_value", detail=f"invalid status '{status}', must be one of: {allowed}")

    reason = payload.get("reason")
    review_date = payload.get("review_date")
    return Accepted(
        kind=EventKind.STATUS_UPDATE,
        payload=StatusUpdatePayload(
            image_id=image_id,
            status=ImageStatus(status),
            reason=reason if _non_empty_str(reason) else None,
            review_date=review_date if _non_empty_str(review_date) else None,
        ),
    )


def _normalize_metadata_value(field: RecordField, value: object) -> str | tuple[str, ...] | None:
    if field == RecordField.TAGS:
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",")]
        elif isinstance(value, list):
            items = [item.strip() for item in value if isinstance(item, str)]
        else:
            return None
        tags = tuple(item for item in items if item)
        return tags or None

    if not _non_empty_str(value):
        return None
    return value


def _non_empty_str(value: object) -> TypeGuard[str]:
    return isinstance(value, str) and bool(value.strip())


_CHECKS: dict[EventKind, Callable[[dict[str, object], PipelineProfile], GateVerdict]] = {
    EventKind.BLOB_CREATED: _check_blob_created,
    EventKind.METADATA_UPDATE: _check_metadata_update,
    EventKind.STATUS_UPDATE: _check_status_update,
}
