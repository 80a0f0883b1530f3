"""
Order intake service.

This service admits new orders and publishes an "order.created" event for
each of them. It owns the orders + outbox store.

Key points:
- Validation and uniqueness checks run before anything is written
- The order and its outbox event are committed in one unit of work, so an
  admitted order always has its event on disk
- Bus publication happens after the commit and is best effort: the request
  succeeds even if nobody is listening, because the outbox can be replayed
- This service does NOT know the notification consumer exists
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from order_pipeline.event_bus import EventBus
from order_pipeline.events import EventTypes, order_created
from shared.errors import ConflictError, ValidationError
from shared.models import Order
from shared.record_store import JsonRecordStore

logger = logging.getLogger("ordering_service")

ORDERS = "orders"
OUTBOX = "outbox"
COLLECTIONS = (ORDERS, OUTBOX)


@dataclass(frozen=True)
class OrderAccepted:
    """The request was accepted and will be processed (not: fully processed)."""
    order_id: str
    status: str = "accepted"


class OrderingService:
    """
    Admits orders, records them with their outbox events, and publishes.

    Example:
        service = OrderingService(store=JsonRecordStore(path, COLLECTIONS), event_bus=bus)

        accepted = await service.submit(["itemA", "itemB"])
        # accepted.order_id is a generated UUID

        await service.submit(["itemA"], order_id="o2")
        # raises ConflictError("duplicate item(s): itemA")
    """

    def __init__(self, store: JsonRecordStore, event_bus: Optional[EventBus] = None):
        """
        Initialize the ordering service.

        Args:
            store: Store holding the "orders" and "outbox" collections
            event_bus: Bus to publish on; without one, events only reach the outbox
        """
        missing = [name for name in COLLECTIONS if name not in store.collections]
        if missing:
            raise ValueError(f"Order store is missing collections: {', '.join(missing)}")
        self.store = store
        self.event_bus = event_bus

    async def submit(self, item_ids: Any, order_id: Any = None) -> OrderAccepted:
        """
        Admit a new order.

        Args:
            item_ids: Non-empty list of item ids, none used by an earlier order
            order_id: Optional caller-supplied id; generated when absent

        Returns:
            OrderAccepted with the resolved order id

        Raises:
            ValidationError: If the input is malformed
            ConflictError: If the order id or any item id is already taken
            StorageError: If the order and event could not be recorded
        """
        items = self._validate_items(item_ids)
        resolved_id = self._resolve_order_id(order_id)

        async with self.store.transaction() as tx:
            orders = tx.read(ORDERS)

            if any(o.get("orderId") == resolved_id for o in orders):
                logger.warning(f"Rejected order {resolved_id}: duplicate orderId")
                raise ConflictError("duplicate orderId")

            existing_items = {item for o in orders for item in o.get("itemId", [])}
            duplicates = [item for item in items if item in existing_items]
            if duplicates:
                logger.warning(f"Rejected order {resolved_id}: duplicate item(s) {duplicates}")
                raise ConflictError(f"duplicate item(s): {', '.join(duplicates)}")

            order = Order(order_id=resolved_id, item_ids=items)
            event = order_created(order)
            tx.append(ORDERS, order.to_record())
            tx.append(OUTBOX, event)

        logger.info(f"Order {resolved_id} admitted with {len(items)} item(s)")

        self._publish(event)
        return OrderAccepted(order_id=resolved_id)

    def _validate_items(self, item_ids: Any) -> list[str]:
        if not isinstance(item_ids, list) or len(item_ids) == 0:
            raise ValidationError("itemId is required (non-empty array)")
        if not all(isinstance(item, str) and item for item in item_ids):
            raise ValidationError("itemId entries must be non-empty strings")
        return list(item_ids)

    def _resolve_order_id(self, order_id: Any) -> str:
        if not order_id:
            return str(uuid4())
        if not isinstance(order_id, str):
            raise ValidationError("orderId must be a string")
        return order_id

    def _publish(self, event: dict[str, Any]) -> None:
        """Publish after commit; failures here never fail the request."""
        if self.event_bus is None:
            logger.debug(f"No event bus attached, {event['orderId']} stays in the outbox only")
            return
        try:
            self.event_bus.publish(EventTypes.ORDER_CREATED, event)
        except Exception as e:
            logger.error(f"Failed to publish event for order {event['orderId']}: {e}")

    # =========================================================================
    # Queries (read-only)
    # =========================================================================

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Get an admitted order by ID."""
        for record in await self.store.read(ORDERS):
            if record.get("orderId") == order_id:
                return Order.model_validate(record)
        return None

    async def list_orders(self) -> list[Order]:
        """Get all admitted orders in admission order."""
        return [Order.model_validate(record) for record in await self.store.read(ORDERS)]

    async def list_outbox(self) -> list[dict[str, Any]]:
        """Get every outbox record in append order."""
        return await self.store.read(OUTBOX)


def create_order_store(path: Path) -> JsonRecordStore:
    """Build the store that backs the ordering service."""
    return JsonRecordStore(path, COLLECTIONS)
