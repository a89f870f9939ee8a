"""Dependency injection container."""

from dependency_injector import containers, providers

from modelfunc.core.config import Settings
from modelfunc.core.database import Database
from modelfunc.core.cache import CacheService
from modelfunc.services.model_func import ModelFunc


class Container(containers.DeclarativeContainer):
    """Wires the store and cache handles into ModelFunc accessors.

    Accessors are built per model; pass the model and its links::

        users = container.model_func(model=User, prefix="user:", link_map={"email": EmailLink()})
    """

    settings = providers.Singleton(
        Settings,
    )

    database = providers.Singleton(
        Database,
        settings=settings
    )

    cache = providers.Singleton(
        CacheService,
        settings=settings
    )

    model_func = providers.Factory(
        ModelFunc,
        database=database,
        cache=cache,
        use_cache=settings.provided.use_cache,
        prefix=settings.provided.cache_prefix,
        expire=settings.provided.cache_ttl,
    )


async def startup(container: "Container") -> None:
    """Open the store and cache connections of container."""
    await container.database().startup()
    await container.cache().startup()


async def shutdown(container: "Container") -> None:
    await container.cache().shutdown()
    await container.database().shutdown()


# Global container instance
container = Container()
