"""
Outbox replay.

The event bus drops messages nobody is subscribed to, and a handler failure
is only logged. Replaying the outbox re-drives the notification consumer
with every recorded event; processed marks make this safe to run any number
of times. This is what turns best-effort delivery into at-least-once.
"""

import logging
from dataclasses import dataclass, field

from order_pipeline.events import EventTypes
from order_pipeline.notification_service import NotificationService
from order_pipeline.services.ordering import OUTBOX
from shared.errors import DeliveryError
from shared.record_store import JsonRecordStore

logger = logging.getLogger("replay")


@dataclass
class ReplayReport:
    """Outcome of one replay run."""
    events_read: int = 0
    events_replayed: int = 0
    notifications_sent: int = 0
    failed_orders: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "eventsRead": self.events_read,
            "eventsReplayed": self.events_replayed,
            "notificationsSent": self.notifications_sent,
            "failedOrders": list(self.failed_orders),
        }


async def replay_outbox(outbox: JsonRecordStore, consumer: NotificationService) -> ReplayReport:
    """
    Feed every outbox event, in append order, to the consumer.

    Events of other types are skipped. A DeliveryError on one event is
    recorded and replay moves on; a StorageError aborts the run.
    """
    report = ReplayReport()
    records = await outbox.read(OUTBOX)
    report.events_read = len(records)

    for record in records:
        if not isinstance(record, dict) or record.get("type") != EventTypes.ORDER_CREATED:
            logger.warning(f"Skipping unknown outbox record: {record!r}")
            continue
        try:
            notified = await consumer.process_event(record)
        except DeliveryError as e:
            logger.error(f"Replay failed for order {e.order_id}: {e}")
            report.failed_orders.append(e.order_id)
            continue
        report.events_replayed += 1
        report.notifications_sent += len(notified)

    logger.info(
        f"Replayed {report.events_replayed}/{report.events_read} outbox event(s), "
        f"{report.notifications_sent} notification(s) sent"
    )
    return report
