from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from gallery.domain.models import EventKind, ProcessResult
from gallery.workers.handlers import ingest, metadata, status

EventHandler = Callable[..., Awaitable[ProcessResult]]


@dataclass(frozen=True)
class EventRoute:
    stage: str
    handle: EventHandler


# Cleanup has no entry: it is reached only through the dead-letter queue.
EVENT_ROUTES: Mapping[EventKind, EventRoute] = {
    EventKind.BLOB_CREATED: EventRoute(stage="ingest", handle=ingest.process_event),
    EventKind.METADATA_UPDATE: EventRoute(stage="metadata", handle=metadata.process_event),
    EventKind.STATUS_UPDATE: EventRoute(stage="status", handle=status.process_event),
}


def route_for(kind: EventKind, routes: Mapping[EventKind, EventRoute] | None = None) -> EventRoute | None:
    return (EVENT_ROUTES if routes is None else routes).get(kind)
