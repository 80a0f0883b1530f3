"""
Demonstration scripts for the order pipeline.

These functions show orders being admitted, events being delivered and
duplicates being suppressed. Run them to watch the logs.
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Optional

from order_pipeline.event_bus import EventBus
from order_pipeline.notification_service import NotificationService, create_processed_store
from order_pipeline.replay import ReplayReport, replay_outbox
from order_pipeline.services.ordering import OrderingService, create_order_store
from shared.channels import LogNotificationChannel, NotificationResult
from shared.config import configure_logging
from shared.errors import ConflictError


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(f"ORDER PIPELINE DEMO: {title}")
    print("=" * 70 + "\n")


async def _order_pipeline(data_dir: Path) -> list[NotificationResult]:
    event_bus = EventBus()
    channel = LogNotificationChannel()

    ordering_service = OrderingService(
        store=create_order_store(data_dir / "orders.json"),
        event_bus=event_bus,
    )
    notification_service = NotificationService(
        marks=create_processed_store(data_dir / "processed_notifications.json"),
        channel=channel,
        event_bus=event_bus,
    )
    notification_service.start()

    print("ACTION: Submitting an order with itemA and itemB")
    print("-" * 70 + "\n")
    accepted = await ordering_service.submit(["itemA", "itemB"])
    print(f"\nAccepted: orderId={accepted.order_id}")

    print("\nACTION: Submitting the same orderId again")
    try:
        await ordering_service.submit(["itemC"], order_id=accepted.order_id)
    except ConflictError as e:
        print(f"Rejected: {e}")

    print("\nACTION: Submitting o2 with the already used itemA")
    try:
        await ordering_service.submit(["itemA"], order_id="o2")
    except ConflictError as e:
        print(f"Rejected: {e}")

    await event_bus.drain()

    print("\nACTION: Redelivering the order's event directly to the consumer")
    outbox = await ordering_service.list_outbox()
    await notification_service.process_event(outbox[0])

    await event_bus.drain()
    notification_service.stop()
    await event_bus.close()

    print("\n" + "-" * 70)
    print("RESULT: one notification per item, none for the redelivery:")
    for msg in channel.get_successful_sends():
        print(f"  {msg}")
    print("-" * 70)
    return channel.get_successful_sends()


async def _replay(data_dir: Path) -> ReplayReport:
    ordering_service = OrderingService(store=create_order_store(data_dir / "orders.json"))

    print("ACTION: Submitting two orders while no consumer is attached")
    print("-" * 70 + "\n")
    await ordering_service.submit(["book-1", "book-2"], order_id="ord-100")
    await ordering_service.submit(["lamp-1"], order_id="ord-101")

    notification_service = NotificationService(
        marks=create_processed_store(data_dir / "processed_notifications.json"),
    )

    print("\nACTION: Replaying the outbox into the consumer (twice)")
    report = await replay_outbox(ordering_service.store, notification_service)
    second = await replay_outbox(ordering_service.store, notification_service)

    print("\n" + "-" * 70)
    print(f"RESULT: first replay sent {report.notifications_sent} notification(s), "
          f"second replay sent {second.notifications_sent}")
    print("-" * 70)
    return report


def run_order_pipeline_demo(data_dir: Optional[Path] = None) -> list[NotificationResult]:
    """
    Demonstrate the live pipeline.

    This shows:
    1. OrderingService admits an order and writes its outbox event
    2. Duplicate orderId and duplicate items are rejected
    3. NotificationService receives the event from the bus
    4. Redelivery of the same event notifies nobody twice
    """
    _banner("Order -> Outbox -> Bus -> Notification")
    if data_dir is not None:
        return asyncio.run(_order_pipeline(Path(data_dir)))
    with tempfile.TemporaryDirectory() as tmp:
        return asyncio.run(_order_pipeline(Path(tmp)))


def run_replay_demo(data_dir: Optional[Path] = None) -> ReplayReport:
    """
    Demonstrate recovering from bus transience.

    Orders are admitted with no bus at all; the consumer later catches up
    from the outbox, and a second replay is a no-op.
    """
    _banner("Outbox Replay")
    if data_dir is not None:
        return asyncio.run(_replay(Path(data_dir)))
    with tempfile.TemporaryDirectory() as tmp:
        return asyncio.run(_replay(Path(tmp)))


if __name__ == "__main__":
    configure_logging()

    print("\nRunning Order Pipeline Demos")
    print("=" * 70)

    run_order_pipeline_demo()
    print("\n")

    run_replay_demo()
