from __future__ import annotations

from dataclasses import dataclass
import json
import math

from gallery.domain.contracts import MessageQueue
from gallery.domain.errors import DomainValidationError
from gallery.domain.models import ChangeEventName, RecordChange

COMPONENT_ID = "transport.change_feed"

CHANGE_EVENT_ATTRIBUTE = "change_event"


def encode_change(change: RecordChange) -> str:
    return json.dumps(
        {
            "eventName": str(change.event_name),
            "keys": {"id": change.image_id},
            "oldImage": change.old,
            "newImage": change.new,
        },
        sort_keys=True,
    )


def decode_change(body: str) -> RecordChange:
    """Read one change record.

    Accepts the plain JSON shape written by ``encode_change`` and the stream
    shape where keys and images sit under ``dynamodb`` as typed attribute
    values (``{"S": "..."}``, ``{"N": "12"}``, ...). A stream batch
    (``{"Records": [...]}``) with exactly one record is unwrapped.
    """
    try:
        document = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise DomainValidationError("change record is not valid JSON") from exc
    if not isinstance(document, dict):
        raise DomainValidationError("change record must be a JSON object")

    records = document.get("Records")
    if isinstance(records, list):
        if len(records) != 1 or not isinstance(records[0], dict):
            raise DomainValidationError("change batch must carry exactly one record")
        document = records[0]

    event_name = _event_name(document.get("eventName"))
    stream = document.get("dynamodb")
    if isinstance(stream, dict):
        keys = _typed_map(stream.get("Keys"))
        old = _typed_map(stream.get("OldImage"))
        new = _typed_map(stream.get("NewImage"))
    else:
        keys = _plain_map(document.get("keys"))
        old = _plain_map(document.get("oldImage"))
        new = _plain_map(document.get("newImage"))

    image_id = keys.get("id") or new.get("id") or old.get("id")
    if not isinstance(image_id, str) or not image_id:
        raise DomainValidationError("change record has no image id")
    new.pop("id", None)
    old.pop("id", None)
    return RecordChange(event_name=event_name, image_id=image_id, old=old, new=new)


def _event_name(value: object) -> ChangeEventName:
    if isinstance(value, str) and value in {item.value for item in ChangeEventName}:
        return ChangeEventName(value)
    raise DomainValidationError(f"unsupported change event name: {value!r}")


def _plain_map(value: object) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DomainValidationError("change image must be an object")
    return dict(value)


def _typed_map(value: object) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DomainValidationError("stream image must be an object")
    return {str(key): _typed_value(item) for key, item in value.items()}


def _typed_value(value: object) -> object:
    if not isinstance(value, dict) or len(value) != 1:
        raise DomainValidationError("stream attribute must be a single-type object")
    type_name, raw = next(iter(value.items()))
    if type_name == "S":
        return str(raw)
    if type_name == "N":
        return _number(raw)
    if type_name == "BOOL":
        return bool(raw)
    if type_name == "NULL":
        return None
    if type_name in {"SS", "NS"} and isinstance(raw, list):
        return [_typed_value({type_name[0]: item}) for item in raw]
    if type_name == "L" and isinstance(raw, list):
        return [_typed_value(item) for item in raw]
    if type_name == "M":
        return _typed_map(raw)
    raise DomainValidationError(f"unsupported stream attribute type: {type_name}")


def _number(raw: object) -> int | float:
    if not isinstance(raw, (str, int, float)) or isinstance(raw, bool):
        raise DomainValidationError(f"stream number has an unsupported type: {raw!r}")
    text = str(raw).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError as exc:
        raise DomainValidationError(f"stream number is not numeric: {text!r}") from exc
    if not math.isfinite(number):
        raise DomainValidationError(f"stream number is not finite: {text!r}")
    return number


@dataclass
class QueueChangeSink:
    """Publishes record changes onto the change-feed queue."""

    queue: MessageQueue

    async def publish_change(self, change: RecordChange) -> None:
        await self.queue.send(
            body=encode_change(change),
            attributes={CHANGE_EVENT_ATTRIBUTE: str(change.event_name)},
        )
