from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from gallery.domain.contracts import ChangeSink
from gallery.domain.models import ImageRecord, RecordChange, RecordField, attribute_value, build_record_change


@dataclass
class InMemoryImageRepository:
    """Non-network record store with deterministic behavior for skeleton mode."""

    items: dict[str, dict[str, object]] = field(default_factory=dict)
    changes: list[RecordChange] = field(default_factory=list)
    change_sink: ChangeSink | None = None

    async def get_image(self, *, image_id: str) -> ImageRecord | None:
        attributes = self.items.get(image_id)
        if attributes is None:
            return None
        return ImageRecord.from_attributes(image_id, attributes)

    async def upsert_image(
        self,
        *,
        image_id: str,
        changes: Mapping[RecordField, object],
        defaults: Mapping[RecordField, object] | None = None,
    ) -> ImageRecord:
        previous = self.items.get(image_id)
        current = merge_attributes(previous or {}, changes=changes, defaults=defaults)
        self.items[image_id] = current
        await self._emit(image_id=image_id, previous=previous, current=current)
        return ImageRecord.from_attributes(image_id, current)

    async def update_existing_image(
        self,
        *,
        image_id: str,
        changes: Mapping[RecordField, object],
    ) -> ImageRecord | None:
        previous = self.items.get(image_id)
        if previous is None:
            return None
        current = merge_attributes(previous, changes=changes)
        self.items[image_id] = current
        await self._emit(image_id=image_id, previous=previous, current=current)
        return ImageRecord.from_attributes(image_id, current)

    async def _emit(
        self,
        *,
        image_id: str,
        previous: dict[str, object] | None,
        current: dict[str, object],
    ) -> None:
        change = build_record_change(image_id=image_id, previous=previous, current=current)
        if change is None:
            return
        self.changes.append(change)
        if self.change_sink is not None:
            await self.change_sink.publish_change(change)


def merge_attributes(
    existing: Mapping[str, object],
    *,
    changes: Mapping[RecordField, object],
    defaults: Mapping[RecordField, object] | None = None,
) -> dict[str, object]:
    merged: dict[str, object] = {str(key): attribute_value(value) for key, value in (defaults or {}).items()}
    merged.update(existing)
    merged.update({str(key): attribute_value(value) for key, value in changes.items()})
    return merged
