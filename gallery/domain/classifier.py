from __future__ import annotations

import json
import re
from urllib.parse import unquote_plus

from gallery.domain.models import ClassifiedEvent, EventKind, InboundMessage, Malformed

COMPONENT_ID = "domain.event.classify"

ENVELOPE_FIELD = "Message"
ENVELOPE_ATTRIBUTES_FIELD = "MessageAttributes"
KIND_ATTRIBUTE = "event_type"
METADATA_TYPE_ATTRIBUTE = "metadata_type"
OBJECT_CREATED_PREFIX = "ObjectCreated:"
S3_EVENT_SOURCE = "aws:s3"

_KIND_ALIAS_STRIP_RE = re.compile(r"[^a-z]")

KIND_ALIASES: dict[str, EventKind] = {
    "blobcreated": EventKind.BLOB_CREATED,
    "objectcreated": EventKind.BLOB_CREATED,
    "metadataupdate": EventKind.METADATA_UPDATE,
    "metadataupdaterequested": EventKind.METADATA_UPDATE,
    "statusupdate": EventKind.STATUS_UPDATE,
    "statusupdaterequested": EventKind.STATUS_UPDATE,
}


def classify_message(message: InboundMessage) -> ClassifiedEvent | Malformed:
    """Turn one raw transport message into a classified event.

    Rules are applied in a fixed order and the first match wins:

    1. the body must be a JSON object;
    2. a topic envelope (an object with a ``Message`` field) is unwrapped once,
       and its ``MessageAttributes`` are merged under the transport attributes;
    3. the kind comes from the out-of-band ``event_type`` attribute, then the
       ``metadata_type`` attribute, then an in-payload ``kind``/``event_type``
       or ``metadata_type`` field, then the payload shape (S3 ``Records`` or
       an ``update.status`` object).

    Never raises: anything that cannot be classified comes back as
    ``Malformed`` so the caller can acknowledge and skip it.
    """
    document = parse_json_object(message.body)
    if document is None:
        return Malformed(
            code="unparseable_payload",
            detail="message body is not a JSON object",
            message_id=message.message_id,
        )

    attributes = dict(message.attributes)
    payload = document
    if is_envelope(document):
        inner = unwrap_envelope(document)
        if inner is None:
            return Malformed(
                code="unparseable_payload",
                detail="envelope Message is not a JSON object",
                message_id=message.message_id,
            )
        if is_envelope(inner):
            return Malformed(
                code="nested_envelope",
                detail="envelope nesting deeper than one level",
                message_id=message.message_id,
            )
        attributes = {**envelope_attributes(document), **attributes}
        payload = inner

    kind = _resolve_kind(payload, attributes)
    if kind is None:
        return Malformed(
            code="unknown_kind",
            detail="message kind is absent or unrecognized",
            message_id=message.message_id,
        )

    if kind == EventKind.BLOB_CREATED:
        blobs = blob_refs_from_payload(payload)
        if not blobs:
            return Malformed(
                code="unknown_kind",
                detail="blob event carries no ObjectCreated records",
                message_id=message.message_id,
            )
        normalized: dict[str, object] = {"blobs": blobs}
    elif kind == EventKind.METADATA_UPDATE:
        normalized = {
            "id": payload.get("id"),
            "field": attributes.get(METADATA_TYPE_ATTRIBUTE)
            or payload.get(METADATA_TYPE_ATTRIBUTE)
            or payload.get("field"),
            "value": payload.get("value"),
        }
    else:
        update = payload.get("update")
        source = update if isinstance(update, dict) else payload
        normalized = {
            "id": payload.get("id"),
            "status": source.get("status"),
            "reason": source.get("reason"),
            "review_date": payload.get("date") or payload.get("reviewDate") or payload.get("review_date"),
        }

    return ClassifiedEvent(kind=kind, payload=normalized, message_id=message.message_id)


def kind_from_alias(value: object) -> EventKind | None:
    if not isinstance(value, str):
        return None
    return KIND_ALIASES.get(_KIND_ALIAS_STRIP_RE.sub("", value.lower()))


def _resolve_kind(payload: dict[str, object], attributes: dict[str, str]) -> EventKind | None:
    if KIND_ATTRIBUTE in attributes:
        # An explicit tag that does not resolve is not second-guessed.
        return kind_from_alias(attributes[KIND_ATTRIBUTE])
    if attributes.get(METADATA_TYPE_ATTRIBUTE):
        return EventKind.METADATA_UPDATE

    for key in ("kind", KIND_ATTRIBUTE):
        if key in payload:
            return kind_from_alias(payload[key])
    if payload.get(METADATA_TYPE_ATTRIBUTE):
        return EventKind.METADATA_UPDATE

    if isinstance(payload.get("Records"), list):
        return EventKind.BLOB_CREATED
    update = payload.get("update")
    if isinstance(update, dict) and "status" in update:
        return EventKind.STATUS_UPDATE
    return None


def blob_refs_from_payload(payload: dict[str, object]) -> list[dict[str, object]]:
    records = payload.get("Records")
    if not isinstance(records, list):
        # Flat shape used by producers that tag the kind explicitly.
        if "key" in payload or "bucket" in payload:
            return [{"bucket": payload.get("bucket"), "key": _decode_key(payload.get("key"))}]
        return []

    blobs: list[dict[str, object]] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        event_name = record.get("eventName")
        if not isinstance(event_name, str) or not event_name.startswith(OBJECT_CREATED_PREFIX):
            continue
        event_source = record.get("eventSource", S3_EVENT_SOURCE)
        if event_source != S3_EVENT_SOURCE:
            continue
        s3 = record.get("s3")
        s3_info = s3 if isinstance(s3, dict) else {}
        bucket = s3_info.get("bucket")
        obj = s3_info.get("object")
        blobs.append(
            {
                "bucket": bucket.get("name") if isinstance(bucket, dict) else None,
                "key": _decode_key(obj.get("key")) if isinstance(obj, dict) else None,
            }
        )
    return blobs


def _decode_key(value: object) -> object:
    # S3 notifications URL-encode keys and use '+' for spaces.
    if isinstance(value, str):
        return unquote_plus(value)
    return value


def is_envelope(document: dict[str, object]) -> bool:
    return isinstance(document.get(ENVELOPE_FIELD), str | dict)


def unwrap_envelope(document: dict[str, object]) -> dict[str, object] | None:
    raw = document.get(ENVELOPE_FIELD)
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        return parse_json_object(raw)
    return None


def envelope_attributes(document: dict[str, object]) -> dict[str, str]:
    raw = document.get(ENVELOPE_ATTRIBUTES_FIELD)
    if not isinstance(raw, dict):
        return {}
    attributes: dict[str, str] = {}
    for name, descriptor in raw.items():
        if isinstance(descriptor, dict):
            value = descriptor.get("Value", descriptor.get("StringValue"))
        else:
            value = descriptor
        if isinstance(value, str):
            attributes[str(name)] = value
    return attributes


def parse_json_object(text: str) -> dict[str, object] | None:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(value, dict):
        return None
    return value
