from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from gallery.domain.contracts import BlobStore, ImageRepository, Notifier
from gallery.domain.pipeline_profile import PipelineProfile
from gallery.settings import PipelineSettings


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class WorkerDeps:
    repository: ImageRepository
    blobs: BlobStore
    notifier: Notifier
    profile: PipelineProfile
    settings: PipelineSettings
    clock: Callable[[], datetime] = field(default=utc_now)

    def now_iso(self) -> str:
        return self.clock().isoformat()
