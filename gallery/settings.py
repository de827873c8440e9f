from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from gallery.domain.models import MissingRecordPolicy
from gallery.domain.pipeline_profile import DEFAULT_METADATA_PROFILE, DEFAULT_PROFILE_PATH

DEFAULT_IMAGES_TABLE = "images"
DEFAULT_IMAGES_BUCKET = "photo-gallery-images"
DEFAULT_NOTIFY_SENDER = "noreply@photo-gallery.local"


@dataclass(frozen=True)
class PipelineSettings:
    images_table: str = DEFAULT_IMAGES_TABLE
    images_bucket: str = DEFAULT_IMAGES_BUCKET
    database_url: str | None = None
    notify_sender: str = DEFAULT_NOTIFY_SENDER
    # Falls back to the sender when a record carries no photographer email.
    notify_default_recipient: str = DEFAULT_NOTIFY_SENDER
    profile_path: Path = DEFAULT_PROFILE_PATH
    metadata_profile: str = DEFAULT_METADATA_PROFILE
    metadata_missing_record_policy: MissingRecordPolicy = MissingRecordPolicy.CREATE
    status_missing_record_policy: MissingRecordPolicy = MissingRecordPolicy.SKIP
    max_receive_count: int = 3
    batch_size: int = 5


def pipeline_settings_from_env() -> PipelineSettings:
    sender = os.getenv("NOTIFY_SENDER") or DEFAULT_NOTIFY_SENDER
    return PipelineSettings(
        images_table=os.getenv("IMAGES_TABLE") or DEFAULT_IMAGES_TABLE,
        images_bucket=os.getenv("IMAGES_BUCKET") or DEFAULT_IMAGES_BUCKET,
        database_url=os.getenv("DATABASE_URL") or None,
        notify_sender=sender,
        notify_default_recipient=os.getenv("NOTIFY_DEFAULT_RECIPIENT") or sender,
        profile_path=Path(os.getenv("PIPELINE_PROFILE_PATH") or DEFAULT_PROFILE_PATH),
        metadata_profile=os.getenv("PIPELINE_METADATA_PROFILE") or DEFAULT_METADATA_PROFILE,
        metadata_missing_record_policy=env_policy("METADATA_MISSING_RECORD_POLICY", MissingRecordPolicy.CREATE),
        status_missing_record_policy=env_policy("STATUS_MISSING_RECORD_POLICY", MissingRecordPolicy.SKIP),
        max_receive_count=env_int("QUEUE_MAX_RECEIVE_COUNT", 3),
        batch_size=env_int("WORKER_BATCH_SIZE", 5),
    )


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default

    try:
        parsed = int(value)
    except ValueError:
        return default

    return parsed if parsed > 0 else default


def env_policy(name: str, default: MissingRecordPolicy) -> MissingRecordPolicy:
    value = (os.getenv(name) or "").strip().lower()
    if value in {item.value for item in MissingRecordPolicy}:
        return MissingRecordPolicy(value)
    return default
