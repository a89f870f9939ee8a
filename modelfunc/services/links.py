"""Link cache: secondary-index lookup from a field value to a record id.

Key schema:
    {prefix}{link_type}:{field}  -> STRING (record id, 7 day TTL)

A link is only a hint. It is created the first time a field value is resolved
through its LinkFinder and deleted whenever ModelFunc writes the owning record.
"""

from typing import Dict, Optional, Protocol, runtime_checkable, TYPE_CHECKING

from modelfunc.constants import LINK_TTL_SECONDS
from modelfunc.core.exceptions import CacheError, CacheMiss, ConfigError
from modelfunc.core.logging import get_logger

if TYPE_CHECKING:
    from modelfunc.core.cache import CacheService
    from modelfunc.core.database import Database

logger = get_logger(__name__)


@runtime_checkable
class LinkFinder(Protocol):
    """Resolves one link type against the store."""

    async def find(self, database: "Database", field: str) -> int:
        """Return the id of the record whose field equals field, or 0."""
        ...

    def field_value(self, record) -> str:
        """Return the field value of record this link type indexes."""
        ...


def parse_id(value) -> int:
    """Parse a cached id. Anything that is not a positive integer is 0."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return 0
    return parsed if parsed > 0 else 0


class LinkResolver:
    """Maps (link_type, field) to a record id through the cache and registered finders."""

    def __init__(self, database: "Database", cache: Optional["CacheService"],
                 prefix: str = "", link_map: Optional[Dict[str, LinkFinder]] = None):
        self.database = database
        self.cache = cache
        self.prefix = prefix
        self.link_map: Dict[str, LinkFinder] = dict(link_map or {})

    def link_key(self, link_type: str, field: str) -> str:
        return f"{self.prefix}{link_type}:{field}"

    def finder(self, link_type: str) -> LinkFinder:
        try:
            return self.link_map[link_type]
        except KeyError:
            raise ConfigError(f"unknown link type: {link_type!r}") from None

    async def get_link(self, link_type: str, field: str) -> int:
        """Cached id for field, 0 when absent."""
        if not field:
            raise ConfigError("get_link: missing parameter field")
        try:
            return parse_id(await self.cache.get(self.link_key(link_type, field)))
        except CacheMiss:
            return 0

    async def create_link(self, record_id: int, link_type: str, field: str) -> None:
        if not record_id:
            raise ConfigError("create_link: missing parameter id")
        if not field:
            raise ConfigError("create_link: missing parameter field")
        await self.cache.set(self.link_key(link_type, field), str(record_id), ttl=LINK_TTL_SECONDS)

    async def delete_link(self, link_type: str, field: str) -> None:
        if not field:
            raise ConfigError("delete_link: missing parameter field")
        await self.cache.delete(self.link_key(link_type, field))

    async def resolve(self, link_type: str, field: str) -> int:
        """Resolve field to a record id, 0 when no record matches.

        Without a cache every call goes to the finder.
        """
        finder = self.finder(link_type)
        if not field:
            raise ConfigError(f"{link_type}: missing parameter field")

        record_id = 0
        if self.cache is not None:
            try:
                record_id = await self.get_link(link_type, field)
            except CacheError as e:
                logger.warning("Link lookup failed, resolving from store",
                               link_type=link_type, field=field, error=str(e))

        if record_id:
            return record_id

        record_id = parse_id(await finder.find(self.database, field))
        logger.debug("Link resolved by finder", link_type=link_type, field=field, record_id=record_id)

        if record_id and self.cache is not None:
            await self.create_link(record_id, link_type, field)

        return record_id

    async def invalidate(self, record) -> None:
        """Delete every link entry derived from record's field values.

        Best effort: a failure for one link type is logged and the loop moves on.
        """
        if self.cache is None:
            return

        for link_type, finder in self.link_map.items():
            try:
                await self.delete_link(link_type, finder.field_value(record))
            except (ConfigError, CacheError) as e:
                logger.warning("Link invalidation skipped", link_type=link_type, error=str(e))
