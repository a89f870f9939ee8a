"""Record base models."""

from .base import SoftDeleteModel, ModelT

__all__ = ["SoftDeleteModel", "ModelT"]
