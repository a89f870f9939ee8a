"""Record accessor, link resolver and post-operation hooks."""

from .model_func import ModelFunc, new_model_func, is_zero
from .links import LinkFinder, LinkResolver
from .hooks import (
    AfterUpdateById,
    AfterSaveById,
    AfterDeleteById,
    AfterSoftDeleteById,
    run_hook,
)

__all__ = [
    # Accessor
    "ModelFunc",
    "new_model_func",
    "is_zero",
    # Links
    "LinkFinder",
    "LinkResolver",
    # Hooks
    "AfterUpdateById",
    "AfterSaveById",
    "AfterDeleteById",
    "AfterSoftDeleteById",
    "run_hook",
]
