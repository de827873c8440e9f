from __future__ import annotations

from collections.abc import Mapping

INBOUND_QUEUE = "image-events"
DEAD_LETTER_QUEUE = "invalid-images"
CHANGE_FEED_QUEUE = "image-changes"

ROLE_TO_STAGE: Mapping[str, str] = {
    "worker-pipeline": "pipeline",
    "worker-cleanup": "cleanup",
    "worker-notify": "notify",
}

ROLE_TO_QUEUE: Mapping[str, str] = {
    "worker-pipeline": INBOUND_QUEUE,
    "worker-cleanup": DEAD_LETTER_QUEUE,
    "worker-notify": CHANGE_FEED_QUEUE,
}

# Worker loops hosted by each runtime role.
RUNTIME_WORKER_ROLES: Mapping[str, tuple[str, ...]] = {
    "api": (),
    "worker-pipeline": ("worker-pipeline",),
    "worker-cleanup": ("worker-cleanup",),
    "worker-notify": ("worker-notify",),
    "standalone": ("worker-pipeline", "worker-cleanup", "worker-notify"),
}
