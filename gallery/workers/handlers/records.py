from __future__ import annotations

from collections.abc import Mapping

from gallery.domain.contracts import ImageRepository
from gallery.domain.models import ImageRecord, MissingRecordPolicy, RecordField


async def apply_record_update(
    repository: ImageRepository,
    *,
    image_id: str,
    changes: Mapping[RecordField, object],
    policy: MissingRecordPolicy,
) -> ImageRecord | None:
    """One atomic partial update; None when the record is absent and policy is skip."""
    if policy == MissingRecordPolicy.CREATE:
        return await repository.upsert_image(image_id=image_id, changes=changes)
    return await repository.update_existing_image(image_id=image_id, changes=changes)
