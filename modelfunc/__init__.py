"""Cache-aside CRUD helpers for SQLModel tables.

- ModelFunc: create / update / fetch / delete / soft delete by id
- Read-through cache on Redis or in-process memory, invalidated on write
- Link cache: field value -> id secondary index with pluggable finders
- Optional post-operation hooks on the record type
"""

from .core.config import Settings
from .core.logging import configure_logging, get_logger
from .core.database import Database
from .core.cache import CacheService
from .core.clock import get_now_time
from .core.exceptions import (
    ModelFuncError,
    StoreError,
    RecordNotFoundError,
    CacheError,
    CacheMiss,
    ConfigError,
)
from .models import SoftDeleteModel
from .services import (
    ModelFunc,
    new_model_func,
    LinkFinder,
    AfterUpdateById,
    AfterSaveById,
    AfterDeleteById,
    AfterSoftDeleteById,
)

__all__ = [
    "Settings",
    "configure_logging",
    "get_logger",
    "Database",
    "CacheService",
    "get_now_time",
    # Errors
    "ModelFuncError",
    "StoreError",
    "RecordNotFoundError",
    "CacheError",
    "CacheMiss",
    "ConfigError",
    # Models
    "SoftDeleteModel",
    # Accessor
    "ModelFunc",
    "new_model_func",
    "LinkFinder",
    "AfterUpdateById",
    "AfterSaveById",
    "AfterDeleteById",
    "AfterSoftDeleteById",
]
