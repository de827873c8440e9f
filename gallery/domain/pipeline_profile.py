from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re

import yaml

from gallery.domain.errors import PipelineProfileError
from gallery.domain.models import ImageStatus, RecordField

DEFAULT_PROFILE_PATH = Path(__file__).resolve().parent.parent / "config" / "pipeline.v1.yaml"
DEFAULT_METADATA_PROFILE = "basic"

EXTENSION_RE = re.compile(r"^\.[a-z0-9]+$")
_ALIAS_STRIP_RE = re.compile(r"[^a-z]")

# Wire names producers use for metadata fields, normalized by
# normalize_field_name(). This table is the only place a string becomes a
# record attribute.
METADATA_FIELD_ALIASES: dict[str, RecordField] = {
    "caption": RecordField.CAPTION,
    "date": RecordField.REVIEW_DATE,
    "reviewdate": RecordField.REVIEW_DATE,
    "name": RecordField.PHOTOGRAPHER_NAME,
    "photographername": RecordField.PHOTOGRAPHER_NAME,
    "email": RecordField.PHOTOGRAPHER_EMAIL,
    "photographeremail": RecordField.PHOTOGRAPHER_EMAIL,
    "description": RecordField.DESCRIPTION,
    "location": RecordField.LOCATION,
    "tags": RecordField.TAGS,
    "photographer": RecordField.PHOTOGRAPHER,
}


@dataclass(frozen=True)
class NotificationTemplate:
    subject_prefix: str
    greeting_fallback: str
    service_name: str


@dataclass(frozen=True)
class PipelineProfile:
    profile_version: str
    metadata_profile: str
    allowed_extensions: tuple[str, ...]
    allowed_statuses: tuple[ImageStatus, ...]
    default_reason: str
    metadata_fields: frozenset[RecordField]
    notification: NotificationTemplate


def normalize_field_name(name: str) -> str:
    return _ALIAS_STRIP_RE.sub("", name.lower())


def resolve_metadata_field(name: str) -> RecordField | None:
    return METADATA_FIELD_ALIASES.get(normalize_field_name(name))


def load_pipeline_profile(
    *,
    file_path: str | Path = DEFAULT_PROFILE_PATH,
    metadata_profile: str = DEFAULT_METADATA_PROFILE,
) -> PipelineProfile:
    data = yaml.safe_load(Path(file_path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise PipelineProfileError("pipeline profile must be a YAML object")
    return parse_pipeline_profile(data, metadata_profile=metadata_profile)


def parse_pipeline_profile(
    data: dict[str, object],
    *,
    metadata_profile: str = DEFAULT_METADATA_PROFILE,
) -> PipelineProfile:
    profile_version = _required_str(data, "profile_version")

    ingest_raw = _required_obj(data, "ingest")
    extensions = tuple(item.lower() for item in _required_str_list(ingest_raw, "allowed_extensions"))
    if not extensions:
        raise PipelineProfileError("ingest.allowed_extensions must contain at least one extension")
    for extension in extensions:
        if not EXTENSION_RE.match(extension):
            raise PipelineProfileError(f"ingest.allowed_extensions has invalid entry: {extension}")

    status_raw = _required_obj(data, "status")
    statuses: list[ImageStatus] = []
    for value in _required_str_list(status_raw, "allowed_statuses"):
        if value not in {item.value for item in ImageStatus} or value == ImageStatus.UNSET:
            raise PipelineProfileError(f"status.allowed_statuses has unsupported status: {value}")
        statuses.append(ImageStatus(value))
    if not statuses:
        raise PipelineProfileError("status.allowed_statuses must contain at least one status")

    metadata_raw = _required_obj(data, "metadata")
    profiles_raw = _required_obj(metadata_raw, "profiles")
    if metadata_profile not in profiles_raw:
        known = ", ".join(sorted(profiles_raw))
        raise PipelineProfileError(f"unknown metadata profile '{metadata_profile}'. Known profiles: {known}")
    metadata_fields: set[RecordField] = set()
    for name in _required_str_list(profiles_raw, metadata_profile):
        field = resolve_metadata_field(name)
        if field is None:
            raise PipelineProfileError(f"metadata.profiles.{metadata_profile} has unknown field: {name}")
        metadata_fields.add(field)

    notification_raw = _required_obj(data, "notification")
    notification = NotificationTemplate(
        subject_prefix=_required_str(notification_raw, "subject_prefix"),
        greeting_fallback=_required_str(notification_raw, "greeting_fallback"),
        service_name=_required_str(notification_raw, "service_name"),
    )

    return PipelineProfile(
        profile_version=profile_version,
        metadata_profile=metadata_profile,
        allowed_extensions=extensions,
        allowed_statuses=tuple(statuses),
        default_reason=_required_str(status_raw, "default_reason"),
        metadata_fields=frozenset(metadata_fields),
        notification=notification,
    )


def _required_str(data: dict[str, object], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise PipelineProfileError(f"{key} is required and must be non-empty string")
    return value


def _required_obj(data: dict[str, object], key: str) -> dict[str, object]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise PipelineProfileError(f"{key} is required and must be object")
    return value


def _required_list(data: dict[str, object], key: str) -> list[object]:
    value = data.get(key)
    if not isinstance(value, list):
        raise PipelineProfileError(f"{key} is required and must be list")
    return value


def _required_str_list(data: dict[str, object], key: str) -> list[str]:
    values = _required_list(data, key)
    result: list[str] = []
    for value in values:
        if not isinstance(value, str) or not value:
            raise PipelineProfileError(f"{key} must contain non-empty strings")
        result.append(value)
    return result
