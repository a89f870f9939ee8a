"""Post-operation hooks a record type may implement.

A record opts in by defining the coroutine method, for example::

    class User(SoftDeleteModel, table=True):
        async def mf_after_update_by_id(self, database, cache):
            await cache.delete(f"user:profile:{self.id}")

Hooks receive the store handle and the cache handle (None when the accessor
has no cache). Raising from a hook fails the enclosing operation. A hook runs
after a failed write too, but not after a cancelled one.
"""

from typing import Optional, Protocol, runtime_checkable, TYPE_CHECKING

from modelfunc.core.logging import get_logger

if TYPE_CHECKING:
    from modelfunc.core.cache import CacheService
    from modelfunc.core.database import Database

logger = get_logger(__name__)


@runtime_checkable
class AfterUpdateById(Protocol):
    async def mf_after_update_by_id(self, database: "Database",
                                    cache: Optional["CacheService"]) -> None:
        ...


@runtime_checkable
class AfterSaveById(Protocol):
    async def mf_after_save_by_id(self, database: "Database",
                                  cache: Optional["CacheService"]) -> None:
        ...


@runtime_checkable
class AfterDeleteById(Protocol):
    async def mf_after_delete_by_id(self, database: "Database",
                                    cache: Optional["CacheService"]) -> None:
        ...


@runtime_checkable
class AfterSoftDeleteById(Protocol):
    async def mf_after_soft_delete_by_id(self, database: "Database",
                                         cache: Optional["CacheService"]) -> None:
        ...


HOOK_METHODS = {
    AfterUpdateById: "mf_after_update_by_id",
    AfterSaveById: "mf_after_save_by_id",
    AfterDeleteById: "mf_after_delete_by_id",
    AfterSoftDeleteById: "mf_after_soft_delete_by_id",
}


async def run_hook(capability: type, record, database: "Database",
                   cache: Optional["CacheService"]) -> bool:
    """Run the hook named by capability if record implements it.

    Returns whether a hook ran. Exceptions raised by the hook propagate.
    """
    if not isinstance(record, capability):
        return False

    method = HOOK_METHODS[capability]
    logger.debug("Running post-operation hook", hook=method, model=type(record).__name__)
    await getattr(record, method)(database, cache)
    return True
