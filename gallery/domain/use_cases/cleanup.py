from __future__ import annotations

from dataclasses import dataclass
import json
import re
from typing import Literal
from urllib.parse import unquote_plus

from gallery.domain.classifier import (
    blob_refs_from_payload,
    envelope_attributes,
    is_envelope,
    parse_json_object,
    unwrap_envelope,
)
from gallery.domain.dto import ExtractCleanupTargetsCommand
from gallery.domain.models import BlobRef

COMPONENT_ID = "domain.cleanup.extract_targets"

ExtractionStrategy = Literal["rejected", "structured", "attributes", "heuristic", "none"]

REJECTED_BLOBS_ATTRIBUTE = "rejected_blobs"

# Tolerates the escaped quotes of a JSON document embedded as a string.
_HEURISTIC_KEY_RE = re.compile(r'\\*"key\\*"\s*:\s*\\*"([^"\\]+)')
_HEURISTIC_BUCKET_RE = re.compile(r'\\*"bucket\\*"\s*:\s*\{[^}]*?\\*"name\\*"\s*:\s*\\*"([^"\\]+)')


@dataclass(frozen=True)
class CleanupTargets:
    blobs: tuple[BlobRef, ...]
    strategy: ExtractionStrategy


def extract_cleanup_targets(cmd: ExtractCleanupTargetsCommand) -> CleanupTargets:
    """Find the blobs a failed message refers to.

    Blobs the gate rejected, carried on the dead-lettered copy, win over
    everything else so allowed siblings in the same event survive. Then
    structured parsing of the message (optionally inside one envelope) is
    preferred; then ``bucket``/``key`` message attributes; the last resort is a
    pattern search over the raw body, which is best-effort only.
    """
    message = cmd.message
    rejected = _rejected_blobs(message.attributes.get(REJECTED_BLOBS_ATTRIBUTE))
    if rejected:
        return CleanupTargets(blobs=rejected, strategy="rejected")

    document = parse_json_object(message.body)
    attributes = dict(message.attributes)

    if document is not None:
        payload = document
        if is_envelope(document):
            attributes = {**envelope_attributes(document), **attributes}
            payload = unwrap_envelope(document) or {}
        blobs = _resolve(blob_refs_from_payload(payload), default_bucket=cmd.default_bucket)
        if blobs:
            return CleanupTargets(blobs=blobs, strategy="structured")

    attribute_key = attributes.get("key")
    attribute_bucket = attributes.get("bucket") or cmd.default_bucket
    if attribute_key and attribute_bucket:
        return CleanupTargets(
            blobs=(BlobRef(bucket=attribute_bucket, key=unquote_plus(attribute_key)),),
            strategy="attributes",
        )

    keys = _HEURISTIC_KEY_RE.findall(message.body)
    bucket_match = _HEURISTIC_BUCKET_RE.search(message.body)
    bucket = bucket_match.group(1) if bucket_match else cmd.default_bucket
    if keys and bucket:
        unique_keys = dict.fromkeys(unquote_plus(key) for key in keys)
        return CleanupTargets(
            blobs=tuple(BlobRef(bucket=bucket, key=key) for key in unique_keys),
            strategy="heuristic",
        )

    return CleanupTargets(blobs=(), strategy="none")


def _resolve(items: list[dict[str, object]], *, default_bucket: str | None) -> tuple[BlobRef, ...]:
    blobs: list[BlobRef] = []
    for item in items:
        key = item.get("key")
        bucket = item.get("bucket") or default_bucket
        if isinstance(key, str) and key and isinstance(bucket, str) and bucket:
            blobs.append(BlobRef(bucket=bucket, key=key))
    return tuple(dict.fromkeys(blobs))


def rejected_blobs_attribute(blobs: tuple[BlobRef, ...]) -> dict[str, str]:
    if not blobs:
        return {}
    encoded = json.dumps([{"bucket": blob.bucket, "key": blob.key} for blob in blobs])
    return {REJECTED_BLOBS_ATTRIBUTE: encoded}


def _rejected_blobs(raw: str | None) -> tuple[BlobRef, ...]:
    if not raw:
        return ()
    try:
        items = json.loads(raw)
    except ValueError:
        return ()
    if not isinstance(items, list):
        return ()
    return _resolve([item for item in items if isinstance(item, dict)], default_bucket=None)
