from __future__ import annotations

import json

from gallery.api.handlers.deps import ApiDeps
from gallery.api.schemas import PublishMessageResponse

COMPONENT_ID = "api.publish_message"


async def publish_message_handler(
    *,
    body: str | dict[str, object],
    attributes: dict[str, str],
    api_deps: ApiDeps,
) -> PublishMessageResponse:
    """Put a raw producer message on the inbound queue unchanged."""
    text = body if isinstance(body, str) else json.dumps(body)
    message_id = await api_deps.inbound_queue.send(body=text, attributes=attributes)
    return PublishMessageResponse(message_id=message_id, queue=api_deps.inbound_queue.name)
