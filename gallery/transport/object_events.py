from __future__ import annotations

import json
from urllib.parse import quote_plus

from gallery.domain.models import BlobMetadata

OBJECT_CREATED_PUT = "ObjectCreated:Put"


def object_created_notification(metadata: BlobMetadata) -> dict[str, object]:
    """S3-style notification for one stored object; keys are URL-encoded."""
    return {
        "Records": [
            {
                "eventVersion": "2.1",
                "eventSource": "aws:s3",
                "eventName": OBJECT_CREATED_PUT,
                "s3": {
                    "bucket": {"name": metadata.bucket},
                    "object": {"key": quote_plus(metadata.key), "size": metadata.size},
                },
            }
        ]
    }


def topic_envelope(payload: dict[str, object], *, attributes: dict[str, str] | None = None) -> str:
    """Wrap a payload the way a topic fan-out delivers it to a queue."""
    envelope: dict[str, object] = {"Type": "Notification", "Message": json.dumps(payload)}
    if attributes:
        envelope["MessageAttributes"] = {
            name: {"Type": "String", "Value": value} for name, value in attributes.items()
        }
    return json.dumps(envelope)
