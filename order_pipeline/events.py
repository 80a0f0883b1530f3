"""
Event definitions for the order pipeline.

Events are facts about things that already happened. The order intake
writes them to the outbox and publishes them on the bus; consumers read
them from either place.

Design decisions:
- Events are named in past tense ("order.created")
- Events carry the full order so consumers never query back
- The version field is fixed at 1; there is a single schema version

Wire form:
    {"type": "order.created", "version": 1, "orderId": "...",
     "itemId": ["..."], "createdAt": "2025-03-01T12:30:00.123Z"}
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from shared.models import Order, format_timestamp


class EventTypes:
    """Constants for event type names (also used as bus topics)."""
    ORDER_CREATED = "order.created"


ORDER_CREATED_VERSION = 1


class OrderCreatedEvent(BaseModel):
    """Outbox record emitted for every admitted order."""
    type: Literal["order.created"] = EventTypes.ORDER_CREATED
    version: Literal[1] = ORDER_CREATED_VERSION
    order_id: str = Field(..., alias="orderId", min_length=1)
    item_ids: list[str] = Field(..., alias="itemId", min_length=1)
    created_at: datetime = Field(..., alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return format_timestamp(value)

    @classmethod
    def from_order(cls, order: Order) -> "OrderCreatedEvent":
        return cls(order_id=order.order_id, item_ids=list(order.item_ids), created_at=order.created_at)

    def to_order(self) -> Order:
        """Reconstruct the order this event was derived from."""
        return Order(order_id=self.order_id, item_ids=list(self.item_ids), created_at=self.created_at)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def order_created(order: Order) -> dict[str, Any]:
    """
    Create the wire payload of an order.created event.

    Published after a new order is admitted.
    """
    return OrderCreatedEvent.from_order(order).to_record()


def parse_order_created(payload: dict[str, Any]) -> OrderCreatedEvent:
    """
    Parse a wire payload into an OrderCreatedEvent.

    Raises:
        pydantic.ValidationError: If the payload doesn't match the schema
    """
    return OrderCreatedEvent.model_validate(payload)
