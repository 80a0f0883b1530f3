"""
Order intake -> outbox -> event bus -> notification pipeline.

- The ordering service admits orders and records each with its outbox event
- The event bus delivers events to subscribers on a later loop turn
- The notification service deduplicates and notifies once per (item, order)
- Replay re-drives the notification service from the outbox
"""

from order_pipeline.event_bus import EventBus, Subscription
from order_pipeline.events import EventTypes, OrderCreatedEvent, order_created
from order_pipeline.notification_service import NotificationService, create_processed_store
from order_pipeline.replay import ReplayReport, replay_outbox
from order_pipeline.services.ordering import OrderAccepted, OrderingService, create_order_store

__all__ = [
    "EventBus",
    "Subscription",
    "EventTypes",
    "OrderCreatedEvent",
    "order_created",
    "NotificationService",
    "create_processed_store",
    "ReplayReport",
    "replay_outbox",
    "OrderAccepted",
    "OrderingService",
    "create_order_store",
]
