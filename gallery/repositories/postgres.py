from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import importlib
import json
from typing import Any

from gallery.domain.contracts import ChangeSink
from gallery.domain.errors import DomainDependencyError
from gallery.domain.models import ImageRecord, RecordField, attribute_value, build_record_change
from gallery.repositories.sql_loader import render_sql

try:
    asyncpg_module = importlib.import_module("asyncpg")
except ModuleNotFoundError:  # pragma: no cover
    asyncpg_module = None  # type: ignore[assignment]


DEFAULT_TABLE = "images"


@dataclass
class AsyncpgPoolManager:
    dsn: str
    pool: Any | None = None

    async def startup(self) -> None:
        if asyncpg_module is None:  # pragma: no cover
            raise RuntimeError("asyncpg is required for postgres repository mode")

        async def _init_connection(conn: Any) -> None:
            await conn.set_type_codec(
                "json",
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog",
            )
            await conn.set_type_codec(
                "jsonb",
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog",
            )

        self.pool = await asyncpg_module.create_pool(
            dsn=self.dsn,
            min_size=1,
            max_size=5,
            init=_init_connection,
        )

    async def shutdown(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None


@dataclass
class PostgresImageRepository:
    pool_manager: AsyncpgPoolManager
    table: str = DEFAULT_TABLE
    change_sink: ChangeSink | None = None

    def __post_init__(self) -> None:
        self._sql_get = render_sql("get_image.sql", table=self.table)
        self._sql_upsert = render_sql("upsert_image.sql", table=self.table)
        self._sql_update_existing = render_sql("update_existing_image.sql", table=self.table)

    def _pool(self) -> Any:
        if self.pool_manager.pool is None:
            raise DomainDependencyError("postgres pool is not initialized")
        return self.pool_manager.pool

    async def get_image(self, *, image_id: str) -> ImageRecord | None:
        pool = self._pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(self._sql_get, image_id)
        if row is None:
            return None
        return ImageRecord.from_attributes(row["id"], dict(row["attributes"] or {}))

    async def upsert_image(
        self,
        *,
        image_id: str,
        changes: Mapping[RecordField, object],
        defaults: Mapping[RecordField, object] | None = None,
    ) -> ImageRecord:
        pool = self._pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    self._sql_upsert,
                    image_id,
                    _jsonb(changes),
                    _jsonb(defaults or {}),
                )
        if row is None:
            raise DomainDependencyError(f"upsert returned no row for image {image_id}")
        previous = row["old_attributes"]
        current = dict(row["new_attributes"] or {})
        await self._emit(image_id=image_id, previous=previous, current=current)
        return ImageRecord.from_attributes(image_id, current)

    async def update_existing_image(
        self,
        *,
        image_id: str,
        changes: Mapping[RecordField, object],
    ) -> ImageRecord | None:
        pool = self._pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(self._sql_update_existing, image_id, _jsonb(changes))
        if row is None:
            return None
        current = dict(row["new_attributes"] or {})
        await self._emit(image_id=image_id, previous=dict(row["old_attributes"] or {}), current=current)
        return ImageRecord.from_attributes(image_id, current)

    async def _emit(
        self,
        *,
        image_id: str,
        previous: dict[str, object] | None,
        current: dict[str, object],
    ) -> None:
        # Published after commit; a crash in between loses the signal, never the write.
        change = build_record_change(image_id=image_id, previous=previous, current=current)
        if change is not None and self.change_sink is not None:
            await self.change_sink.publish_change(change)


def _jsonb(values: Mapping[RecordField, object]) -> dict[str, object]:
    return {str(key): attribute_value(value) for key, value in values.items()}
