from __future__ import annotations

from dataclasses import dataclass

from gallery.domain.contracts import BlobStore, ImageRepository, MessageQueue
from gallery.settings import PipelineSettings


@dataclass(frozen=True)
class ApiDeps:
    repository: ImageRepository
    blobs: BlobStore
    inbound_queue: MessageQueue
    settings: PipelineSettings
