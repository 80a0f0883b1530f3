"""
Shared pytest fixtures for the order pipeline tests.

Every test gets its own data directory, stores and event bus, so tests
never share state.
"""

import pytest
import pytest_asyncio
from pathlib import Path

from order_pipeline.event_bus import EventBus
from order_pipeline.notification_service import NotificationService, create_processed_store
from order_pipeline.services.ordering import OrderingService, create_order_store
from shared.channels import LogNotificationChannel
from shared.record_store import JsonRecordStore


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Empty data directory for the JSON stores."""
    return tmp_path / "data"


@pytest_asyncio.fixture
async def event_bus():
    """Fresh event bus for each test, closed afterwards."""
    bus = EventBus()
    yield bus
    await bus.close()


@pytest.fixture
def order_store(data_dir: Path) -> JsonRecordStore:
    """Orders + outbox store backed by the test data directory."""
    return create_order_store(data_dir / "orders.json")


@pytest.fixture
def processed_store(data_dir: Path) -> JsonRecordStore:
    """Processed-mark store backed by the test data directory."""
    return create_processed_store(data_dir / "processed_notifications.json")


@pytest.fixture
def channel() -> LogNotificationChannel:
    """Fresh notification channel that never fails."""
    return LogNotificationChannel(fail_rate=0.0)


@pytest.fixture
def ordering_service(order_store: JsonRecordStore, event_bus: EventBus) -> OrderingService:
    """Ordering service publishing on the test bus."""
    return OrderingService(store=order_store, event_bus=event_bus)


@pytest.fixture
def notification_service(
    processed_store: JsonRecordStore,
    channel: LogNotificationChannel,
    event_bus: EventBus,
) -> NotificationService:
    """Notification service attached to the test bus (not started)."""
    return NotificationService(marks=processed_store, channel=channel, event_bus=event_bus)


# =============================================================================
# Sample data
# =============================================================================

@pytest.fixture
def two_item_ids() -> list[str]:
    """Items of the reference two-item order."""
    return ["itemA", "itemB"]


@pytest.fixture
def sample_event() -> dict:
    """A well-formed order.created payload."""
    return {
        "type": "order.created",
        "version": 1,
        "orderId": "ord-001",
        "itemId": ["itemA", "itemB"],
        "createdAt": "2025-03-01T12:30:00.123Z",
    }
