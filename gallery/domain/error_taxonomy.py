from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

# Canonical error vocabulary for all stages.
ErrorCode = Literal[
    "unparseable_payload",
    "nested_envelope",
    "unknown_kind",
    "missing_required_field",
    "invalid_enum_value",
    "disallowed_extension",
    "record_not_found",
    "blob_not_found",
    "status_unchanged",
    "dependency_unavailable",
    "notification_failed",
    "internal_error",
]

# What the batch loop does with a message that produced the code.
Disposition = Literal["dropped", "escalated", "ignored", "retry"]

CANONICAL_ERROR_CODES: tuple[ErrorCode, ...] = (
    "unparseable_payload",
    "nested_envelope",
    "unknown_kind",
    "missing_required_field",
    "invalid_enum_value",
    "disallowed_extension",
    "record_not_found",
    "blob_not_found",
    "status_unchanged",
    "dependency_unavailable",
    "notification_failed",
    "internal_error",
)

# Malformed producer input: acknowledged and never retried.
DROP_ERROR_CODES: frozenset[ErrorCode] = frozenset(
    {
        "unparseable_payload",
        "nested_envelope",
        "unknown_kind",
        "missing_required_field",
        "invalid_enum_value",
    }
)

# Already persisted invalid content that needs a compensating delete.
ESCALATE_ERROR_CODES: frozenset[ErrorCode] = frozenset({"disallowed_extension"})

# Expected absence and degraded-but-acceptable outcomes.
IGNORE_ERROR_CODES: frozenset[ErrorCode] = frozenset(
    {
        "record_not_found",
        "blob_not_found",
        "status_unchanged",
        "notification_failed",
    }
)

# Stage-specific allowlist. If a stage emits a code outside this map,
# it is normalized to internal_error by resolve_stage_error().
STAGE_ERROR_MAP: Mapping[str, frozenset[ErrorCode]] = {
    "classify": frozenset(
        {
            "unparseable_payload",
            "nested_envelope",
            "unknown_kind",
            "internal_error",
        }
    ),
    "ingest": frozenset(
        {
            "missing_required_field",
            "disallowed_extension",
            "blob_not_found",
            "dependency_unavailable",
            "internal_error",
        }
    ),
    "metadata": frozenset(
        {
            "missing_required_field",
            "invalid_enum_value",
            "record_not_found",
            "dependency_unavailable",
            "internal_error",
        }
    ),
    "status": frozenset(
        {
            "missing_required_field",
            "invalid_enum_value",
            "record_not_found",
            "dependency_unavailable",
            "internal_error",
        }
    ),
    "cleanup": frozenset(
        {
            "unparseable_payload",
            "blob_not_found",
            "dependency_unavailable",
            "internal_error",
        }
    ),
    "notify": frozenset(
        {
            "unparseable_payload",
            "missing_required_field",
            "record_not_found",
            "status_unchanged",
            "notification_failed",
            "internal_error",
        }
    ),
}


def is_canonical_error_code(code: str) -> bool:
    return code in CANONICAL_ERROR_CODES


def classify_error(code: ErrorCode) -> Disposition:
    if code in DROP_ERROR_CODES:
        return "dropped"
    if code in ESCALATE_ERROR_CODES:
        return "escalated"
    if code in IGNORE_ERROR_CODES:
        return "ignored"
    return "retry"


def resolve_stage_error(*, stage: str, code: str) -> ErrorCode:
    allowed = STAGE_ERROR_MAP.get(stage, frozenset({"internal_error"}))
    if code in allowed and is_canonical_error_code(code):
        return code
    # Keep outcome codes stable even if a handler emitted an unsupported code.
    return "internal_error"
