"""
Notification consumer for the order pipeline.

This service subscribes to "order.created" events and sends one
notification per item of the order. It owns the processed-mark store.

Design decisions:
- Subscribes to events, doesn't get called by the order intake
- Idempotent: a processed mark "itemId::orderId" is checked before sending
  and recorded after, so redelivered events never notify twice
- Marks for one event are persisted together at the end of the event. A
  crash in the middle of an event loses that event's new marks, and those
  items are notified again on redelivery (at-least-once, not exactly-once)
- The processed-mark transaction holds the store lock for the whole event,
  so concurrent deliveries of the same event cannot both send
- Without an event bus the service is replay-only (see replay.py)
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from order_pipeline.event_bus import EventBus, Subscription
from order_pipeline.events import EventTypes
from shared.channels import LogNotificationChannel
from shared.errors import DeliveryError
from shared.models import processed_mark_key
from shared.record_store import JsonRecordStore

logger = logging.getLogger("notification_service")

PROCESSED = "processed"


class NotificationService:
    """
    Event-driven, idempotent notification consumer.

    Example:
        service = NotificationService(marks=create_processed_store(path), event_bus=bus)
        service.start()

        # Now every order.created published on the bus notifies once per item
    """

    def __init__(
        self,
        marks: JsonRecordStore,
        channel: Optional[LogNotificationChannel] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Initialize the notification service.

        Args:
            marks: Store holding the "processed" collection
            channel: Channel performing the notification (defaults to a new instance)
            event_bus: Event bus to subscribe to; None means replay-only
        """
        if PROCESSED not in marks.collections:
            raise ValueError(f"Processed-mark store is missing the '{PROCESSED}' collection")
        self.marks = marks
        self.channel = channel or LogNotificationChannel()
        self.event_bus = event_bus

        self._subscription: Optional[Subscription] = None

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def start(self) -> Optional[Subscription]:
        """
        Subscribe to order.created events.

        Returns:
            The subscription, or None when no event bus is attached
        """
        if self.event_bus is None:
            logger.info("NotificationService has no event bus, running in replay-only mode")
            return None

        if self.is_subscribed:
            logger.warning("NotificationService already started")
            return self._subscription

        self._subscription = self.event_bus.subscribe(EventTypes.ORDER_CREATED, self.on_event)
        logger.info("NotificationService started - subscribed to order.created")
        return self._subscription

    def stop(self) -> None:
        """Stop the service by cancelling its subscription."""
        if self._subscription is None:
            return
        self._subscription.cancel()
        self._subscription = None
        logger.info("NotificationService stopped")

    # =========================================================================
    # Event handling
    # =========================================================================

    async def on_event(self, event: dict[str, Any]) -> None:
        """Bus handler for order.created."""
        await self.process_event(event)

    async def process_event(self, event: Any) -> list[str]:
        """
        Notify once per not-yet-processed item of an order.created event.

        Malformed events (no orderId, or itemId not a list) are ignored.

        Returns:
            The items notified by this call (empty for duplicates)

        Raises:
            DeliveryError: If the channel failed or raised for some items; marks for the
                items that did succeed are committed first
            StorageError: If the processed marks can't be read or written
        """
        if not isinstance(event, Mapping):
            return []
        order_id = event.get("orderId")
        items = event.get("itemId")
        if not order_id or not isinstance(items, list):
            logger.debug(f"Ignoring malformed event: {event!r}")
            return []

        notified: list[str] = []
        failed: list[str] = []

        async with self.marks.transaction() as tx:
            seen = set(tx.read(PROCESSED))
            for item in items:
                key = processed_mark_key(item, order_id)
                if key in seen:
                    logger.debug(f"Skipping already processed {key}")
                    continue

                try:
                    result = self.channel.send(order_id, item)
                except Exception as e:
                    logger.error(f"Channel raised for {key}: {e}")
                    failed.append(item)
                    continue
                if not result.success:
                    failed.append(item)
                    continue

                seen.add(key)
                tx.append(PROCESSED, key)
                notified.append(item)

        if notified:
            logger.info(f"Order {order_id}: notified {len(notified)} item(s)")
        if failed:
            raise DeliveryError(order_id, failed)
        return notified

    async def processed_count(self) -> int:
        """Number of processed marks recorded so far."""
        return await self.marks.count(PROCESSED)


def create_processed_store(path: Path) -> JsonRecordStore:
    """Build the store that backs the notification service."""
    return JsonRecordStore(path, (PROCESSED,))
