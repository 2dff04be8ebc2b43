"""Change set model."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

ItemT = TypeVar("ItemT")
UpdateT = TypeVar("UpdateT")


class ChangeSet(BaseModel, Generic[ItemT, UpdateT]):
    """Three-way classification of what changed in a collection.

    Order within each container carries no meaning. Missing containers are
    normalized to empty ones and the record is read-only after construction.

    Args:
        added_items: Items present only in the updated collection.
        removed_items: Items present only in the original collection.
        updated_items: Per-item diffs of items present in both.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    added_items: tuple[ItemT, ...] = Field(default=(), description="Added items")
    removed_items: tuple[ItemT, ...] = Field(default=(), description="Removed items")
    updated_items: tuple[UpdateT, ...] = Field(default=(), description="Updated item diffs")

    @field_validator("added_items", "removed_items", "updated_items", mode="before")
    @classmethod
    def normalize_missing(cls, value: Any) -> Any:
        """Treat None as an empty container."""
        if value is None:
            return ()
        return tuple(value)

    def is_empty(self) -> bool:
        """Check if nothing was added, removed or updated."""
        return not (self.added_items or self.removed_items or self.updated_items)
