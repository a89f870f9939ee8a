"""Table models, link finders and a recording cache shared by the tests."""

from typing import ClassVar, List, Tuple

from sqlmodel import Field, select

from modelfunc.core.cache import CacheService
from modelfunc.core.exceptions import CacheError
from modelfunc.models.base import SoftDeleteModel


class User(SoftDeleteModel, table=True):
    __tablename__ = "mf_test_users"

    email: str = Field(default="", max_length=255, unique=True)
    name: str = Field(default="", max_length=255)
    age: int = Field(default=0)
    active: bool = Field(default=True)


class Article(SoftDeleteModel, table=True):
    """Implements every post-operation hook."""

    __tablename__ = "mf_test_articles"

    slug: str = Field(default="", max_length=255, unique=True)
    title: str = Field(default="", max_length=255)

    hook_calls: ClassVar[List[Tuple[str, int, object, object]]] = []
    hook_state: ClassVar[dict] = {"error": None}

    async def _record_hook(self, name, database, cache):
        Article.hook_calls.append((name, self.id, database, cache))
        if Article.hook_state["error"] is not None:
            raise Article.hook_state["error"]

    async def mf_after_update_by_id(self, database, cache):
        await self._record_hook("update_by_id", database, cache)

    async def mf_after_save_by_id(self, database, cache):
        await self._record_hook("save_by_id", database, cache)

    async def mf_after_delete_by_id(self, database, cache):
        await self._record_hook("delete_by_id", database, cache)

    async def mf_after_soft_delete_by_id(self, database, cache):
        await self._record_hook("soft_delete_by_id", database, cache)


class ColumnLink:
    """Finds a User id by an exact match on one column."""

    def __init__(self, column: str):
        self.column = column
        self.calls: List[str] = []

    async def find(self, database, field: str) -> int:
        self.calls.append(field)
        async with database.get_session() as session:
            stmt = select(User.id).where(getattr(User, self.column) == field)
            result = await session.execute(stmt)
            return result.scalars().first() or 0

    def field_value(self, record) -> str:
        return getattr(record, self.column)


class RecordingCache(CacheService):
    """Memory-backed CacheService that records calls and can fail chosen keys."""

    def __init__(self, settings):
        super().__init__(settings)
        self.calls: List[Tuple[str, str]] = []
        self.failing_keys = set()
        self.failing_gets = set()

    def _check(self, operation: str, key: str):
        self.calls.append((operation, key))
        if key in self.failing_keys:
            raise CacheError(f"{operation} {key}: backend down")

    async def get(self, key):
        self._check("get", key)
        if key in self.failing_gets:
            raise CacheError(f"get {key}: backend down")
        return await super().get(key)

    async def set(self, key, value, ttl=None):
        self._check("set", key)
        await super().set(key, value, ttl)

    async def delete(self, key):
        self._check("delete", key)
        return await super().delete(key)

    def keys(self):
        return set(self.memory_cache)
