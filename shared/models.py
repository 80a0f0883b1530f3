"""
Domain models for the order pipeline.

Design decisions:
- Using Pydantic for validation and serialization
- Python-side field names are snake_case; the persisted/wire form uses the
  camelCase aliases (orderId, itemId, createdAt)
- Orders are frozen: once admitted they are never mutated
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def utcnow() -> datetime:
    """Current UTC time, truncated to the millisecond precision we persist."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with millisecond precision.

    Example: 2025-03-01T12:30:00.123Z
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Order(BaseModel):
    """
    An admitted order.

    Every item id in an admitted order is unique across all orders ever
    admitted, and the order id itself is globally unique.
    """
    order_id: str = Field(..., alias="orderId", min_length=1, description="Unique order identifier")
    item_ids: list[str] = Field(..., alias="itemId", min_length=1, description="Items in this order")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return format_timestamp(value)

    def to_record(self) -> dict:
        """Serialize to the persisted/wire form."""
        return self.model_dump(by_alias=True, mode="json")


def processed_mark_key(item_id: str, order_id: str) -> str:
    """
    Composite key of a ProcessedMark.

    A mark means "this item, in this order, already triggered a notification".
    """
    return f"{item_id}::{order_id}"
