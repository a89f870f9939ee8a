"""Base table model for records managed by ModelFunc."""

from datetime import datetime
from typing import Optional, TypeVar

from sqlmodel import SQLModel, Field, DateTime


class SoftDeleteModel(SQLModel):
    """Integer primary key plus a nullable soft-delete marker.

    Subclass with ``table=True``::

        class User(SoftDeleteModel, table=True):
            __tablename__ = "users"

            email: str = Field(max_length=255, index=True)
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    deleted_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


ModelT = TypeVar("ModelT", bound=SoftDeleteModel)
