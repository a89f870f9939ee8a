"""Cache-aside CRUD accessor for a single SQLModel table.

Operations:
    create               insert a record
    update_by_id         update by id, zero-valued fields skipped
    save_by_id           update by id, every field written
    first_by_id          fetch by id
    first_by_id_sd       fetch by id, soft-deleted rows excluded
    first_by_link        fetch through a link (secondary index)
    first_by_link_sd     fetch through a link, see its docstring
    delete_by_id         hard delete by id
    soft_delete_by_id    set deleted_at by id

With use_cache on, reads populate ``{prefix}id:{id}`` on a miss and writes
delete it (never update it) together with every link entry derived from the
written record. Entries are created again by the next read.

Post-operation hooks (see modelfunc.services.hooks) run after update_by_id,
save_by_id, delete_by_id and soft_delete_by_id.
"""

import asyncio
import json
import numbers
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Generic, Optional, Type, TYPE_CHECKING

from pydantic import ValidationError
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from modelfunc.constants import PRIMARY_KEY_SEGMENT
from modelfunc.core.clock import get_now_time
from modelfunc.core.exceptions import CacheError, CacheMiss, ConfigError, RecordNotFoundError, StoreError
from modelfunc.core.logging import get_logger, log_store_operation
from modelfunc.models.base import ModelT
from modelfunc.services.hooks import (
    AfterDeleteById,
    AfterSaveById,
    AfterSoftDeleteById,
    AfterUpdateById,
    run_hook,
)
from modelfunc.services.links import LinkFinder, LinkResolver

if TYPE_CHECKING:
    from modelfunc.core.cache import CacheService
    from modelfunc.core.database import Database

logger = get_logger(__name__)

# Statements run in a fresh session, there is no identity map to synchronize
BULK_BY_ID = {"synchronize_session": False}


def is_zero(value: Any) -> bool:
    """Whether value counts as unset for a partial update."""
    if value is None or value == "":
        return True
    if isinstance(value, numbers.Number):
        return value == 0
    return False


class ModelFunc(Generic[ModelT]):
    """CRUD helper for ``model`` backed by a Database and an optional CacheService."""

    def __init__(self, model: Type[ModelT], database: "Database", *,
                 use_cache: bool = False,
                 cache: Optional["CacheService"] = None,
                 prefix: str = "",
                 expire: int = 3600,
                 link_map: Optional[Dict[str, LinkFinder]] = None):
        if use_cache and cache is None:
            raise ConfigError("use_cache requires a cache service")

        self.model = model
        self.database = database
        self.use_cache = use_cache
        self.cache = cache
        self.prefix = prefix
        self.expire = expire
        self.links = LinkResolver(
            database,
            cache if use_cache else None,
            prefix=prefix,
            link_map=link_map,
        )

    @property
    def table(self) -> str:
        return getattr(self.model, "__tablename__", self.model.__name__)

    @property
    def link_map(self) -> Dict[str, LinkFinder]:
        return self.links.link_map

    # ============================================================================
    # Public operations
    # ============================================================================

    async def create(self, record: ModelT) -> ModelT:
        """Insert record. The cache is populated lazily by the first read."""
        async with self._session("create") as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)
        return record

    async def update_by_id(self, record: ModelT, record_id: int) -> None:
        """Write the non-zero fields of record to row record_id.

        Only fields set on record (by its constructor or by assignment) are
        considered, so model defaults never overwrite stored values.
        """
        async with self._after_write(AfterUpdateById, record):
            await self._update_by_id_store(record, record_id, skip_zero=True)
            await self._invalidate(record, record_id)

    async def save_by_id(self, record: ModelT, record_id: int) -> None:
        """Overwrite row record_id with every field of record."""
        async with self._after_write(AfterSaveById, record):
            await self._update_by_id_store(record, record_id, skip_zero=False)
            await self._invalidate(record, record_id)

    async def first_by_id(self, record_id: int) -> ModelT:
        """Fetch row record_id, reading through the cache when enabled.

        Raises:
            RecordNotFoundError: no such row
            CacheError: cache backend failure or corrupt entry
        """
        if self.use_cache:
            return await self._first_by_id_cached(record_id, exclude_deleted=False)
        return await self._first_by_id_store(record_id, exclude_deleted=False)

    async def first_by_id_sd(self, record_id: int) -> ModelT:
        """Fetch row record_id unless it is soft deleted.

        The store query filters on deleted_at, the cache does not: entries are
        shared with first_by_id, so a cached copy of a soft-deleted row (for
        instance one cached by first_by_id after the soft delete) is returned.
        """
        if self.use_cache:
            return await self._first_by_id_cached(record_id, exclude_deleted=True)
        return await self._first_by_id_store(record_id, exclude_deleted=True)

    async def first_by_link(self, link_type: str, field: str) -> Optional[ModelT]:
        """Fetch the record whose link_type field equals field.

        Returns None when the finder knows no such record.

        Raises:
            ConfigError: link_type not registered or field empty
        """
        return await self._first_by_link(link_type, field)

    async def first_by_link_sd(self, link_type: str, field: str) -> Optional[ModelT]:
        """Same resolution as first_by_link.

        The record is fetched with first_by_id, not first_by_id_sd, so soft
        deleted records are returned here as well. Callers that need to skip
        them check ``record.is_deleted``.
        """
        return await self._first_by_link(link_type, field)

    async def delete_by_id(self, record: ModelT, record_id: int) -> None:
        """Hard delete row record_id."""
        async with self._after_write(AfterDeleteById, record):
            async with self._session("delete_by_id", record_id) as session:
                await session.execute(delete(self.model).where(self.model.id == record_id),
                                      execution_options=BULK_BY_ID)
                await session.commit()
            await self._invalidate(record, record_id)

    async def soft_delete_by_id(self, record: ModelT, record_id: int) -> None:
        """Set deleted_at on row record_id (and on record) to the current UTC+8 time."""
        async with self._after_write(AfterSoftDeleteById, record):
            deleted_at = get_now_time()
            async with self._session("soft_delete_by_id", record_id) as session:
                await session.execute(
                    update(self.model)
                    .where(self.model.id == record_id)
                    .values(deleted_at=deleted_at),
                    execution_options=BULK_BY_ID,
                )
                await session.commit()
            record.deleted_at = deleted_at
            await self._invalidate(record, record_id)

    # ============================================================================
    # Cache keys and entries
    # ============================================================================

    def cache_key(self, record_id: int) -> str:
        return f"{self.prefix}{PRIMARY_KEY_SEGMENT}:{record_id}"

    async def _get_cache(self, record_id: int) -> ModelT:
        key = self.cache_key(record_id)
        raw = await self.cache.get(key)
        try:
            return self.model.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Corrupt cache entry", key=key, error=str(e))
            raise CacheError(f"corrupt cache entry {key}: {e}") from e

    async def _update_cache(self, record: ModelT, record_id: int) -> None:
        await self.cache.set(self.cache_key(record_id), record.model_dump_json(), ttl=self.expire)

    async def _invalidate(self, record: ModelT, record_id: int) -> None:
        if not self.use_cache:
            return

        await self.cache.delete(self.cache_key(record_id))
        await self.links.invalidate(record)

    # ============================================================================
    # Store access
    # ============================================================================

    @asynccontextmanager
    async def _after_write(self, capability: type, record: ModelT):
        """Run the record's post-operation hook once the write block exits.

        The hook also runs when the write failed and its exception then replaces
        the write error. A cancelled write skips the hook.
        """
        try:
            yield
        except asyncio.CancelledError:
            raise
        except Exception:
            await run_hook(capability, record, self.database, self.cache)
            raise
        await run_hook(capability, record, self.database, self.cache)

    @asynccontextmanager
    async def _session(self, operation: str, record_id: Optional[int] = None):
        start_time = time.perf_counter()
        try:
            async with self.database.get_session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Store operation failed", operation=operation, table=self.table,
                         record_id=record_id, error=str(e))
            raise StoreError(f"{operation} {self.table}: {e}") from e
        log_store_operation(logger, operation, self.table, start_time, record_id=record_id)

    async def _first_by_id_store(self, record_id: int, exclude_deleted: bool) -> ModelT:
        stmt = select(self.model).where(self.model.id == record_id)
        if exclude_deleted:
            stmt = stmt.where(self.model.deleted_at.is_(None))

        async with self._session("first_by_id", record_id) as session:
            result = await session.execute(stmt)
            record = result.scalars().first()

        if record is None:
            raise RecordNotFoundError(self.table, record_id)
        return record

    async def _first_by_id_cached(self, record_id: int, exclude_deleted: bool) -> ModelT:
        try:
            return await self._get_cache(record_id)
        except CacheMiss:
            pass

        record = await self._first_by_id_store(record_id, exclude_deleted)
        await self._update_cache(record, record_id)
        return record

    async def _update_by_id_store(self, record: ModelT, record_id: int, skip_zero: bool) -> None:
        if skip_zero:
            values = record.model_dump(exclude={"id"}, exclude_unset=True)
            values = {name: value for name, value in values.items() if not is_zero(value)}
        else:
            values = record.model_dump(exclude={"id"})

        if not values:
            logger.debug("Nothing to update", table=self.table, record_id=record_id)
            return

        operation = "update_by_id" if skip_zero else "save_by_id"
        async with self._session(operation, record_id) as session:
            await session.execute(update(self.model).where(self.model.id == record_id).values(**values),
                                  execution_options=BULK_BY_ID)
            await session.commit()

    async def _first_by_link(self, link_type: str, field: str) -> Optional[ModelT]:
        record_id = await self.links.resolve(link_type, field)
        if not record_id:
            return None
        return await self.first_by_id(record_id)


def new_model_func(model: Type[ModelT], database: "Database") -> ModelFunc[ModelT]:
    """Store-only accessor for model (cache disabled)."""
    return ModelFunc(model, database)
