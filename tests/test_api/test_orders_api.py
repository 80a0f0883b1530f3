"""
Tests for the HTTP layer.

These tests drive the FastAPI app through TestClient, including the
lifespan that wires the bus, the stores and the consumer.
"""

import asyncio
import json
import time
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from order_pipeline.services.ordering import OrderingService, create_order_store
from shared.channels import LogNotificationChannel
from shared.config import Settings
from shared.errors import StorageError


def wait_for(condition: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll until the condition holds; deliveries run on the app's loop."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    return Settings(data_dir=data_dir, replay_on_startup=True)


@pytest.fixture
def api_channel() -> LogNotificationChannel:
    return LogNotificationChannel()


@pytest.fixture
def client(settings: Settings, api_channel: LogNotificationChannel):
    """Test client with the lifespan running."""
    app = create_app(settings=settings, channel=api_channel)
    with TestClient(app) as test_client:
        yield test_client


class TestHealthEndpoint:

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestCreateOrder:
    """Tests for POST /orders."""

    def test_rejects_empty_item_list(self, client):
        response = client.post("/orders", json={"itemId": []})

        assert response.status_code == 400
        assert response.json() == {"error": "itemId is required (non-empty array)"}

    def test_rejects_missing_item_list(self, client):
        response = client.post("/orders", json={"orderId": "o1"})

        assert response.status_code == 400
        assert "itemId" in response.json()["error"]

    def test_rejects_non_object_body(self, client):
        response = client.post("/orders", json=["itemA"])

        assert response.status_code == 400
        assert "error" in response.json()

    def test_rejects_non_string_order_id(self, client):
        response = client.post("/orders", json={"itemId": ["a"], "orderId": 7})

        assert response.status_code == 400
        assert response.json() == {"error": "orderId must be a string"}

    def test_accepts_order_and_returns_order_id(self, client):
        response = client.post("/orders", json={"itemId": ["a"]})

        assert response.status_code == 202
        assert isinstance(response.json()["orderId"], str)

    def test_duplicate_order_id(self, client):
        order_id = "test-dup-id-123"

        first = client.post("/orders", json={"orderId": order_id, "itemId": ["x"]})
        assert first.status_code == 202

        second = client.post("/orders", json={"orderId": order_id, "itemId": ["y"]})
        assert second.status_code == 409
        assert second.json() == {"error": "duplicate orderId"}

    def test_duplicate_item(self, client):
        first = client.post("/orders", json={"itemId": ["itemA", "itemB"]})
        assert first.status_code == 202

        second = client.post("/orders", json={"itemId": ["itemA"], "orderId": "o2"})
        assert second.status_code == 409
        assert second.json() == {"error": "duplicate item(s): itemA"}

    def test_storage_failure_returns_500(self, client, monkeypatch):
        store = client.app.state.ordering_service.store

        def broken_write(document):
            raise StorageError("disk full")

        monkeypatch.setattr(store, "_write", broken_write)

        response = client.post("/orders", json={"itemId": ["a"]})

        assert response.status_code == 500
        assert response.json() == {"error": "storage failure"}


class TestNotificationsOverHttp:
    """The accepted order ends up notified, once per item."""

    def test_publishes_event_and_notifies_per_item(self, client, api_channel):
        response = client.post("/orders", json={"itemId": ["itemA", "itemB"]})
        assert response.status_code == 202
        order_id = response.json()["orderId"]

        assert wait_for(lambda: len(api_channel.find_messages_for_order(order_id)) == 2)
        assert sorted(m.item_id for m in api_channel.find_messages_for_order(order_id)) == [
            "itemA",
            "itemB",
        ]

    def test_processed_marks_written(self, client, api_channel, settings: Settings):
        order_id = client.post("/orders", json={"itemId": ["itemA", "itemB"]}).json()["orderId"]
        assert wait_for(lambda: api_channel.get_sent_count() == 2)

        def marks_on_disk() -> list:
            if not settings.processed_path.exists():
                return []
            return json.loads(settings.processed_path.read_text())["processed"]

        assert wait_for(lambda: len(marks_on_disk()) == 2)
        assert sorted(marks_on_disk()) == sorted([f"itemA::{order_id}", f"itemB::{order_id}"])

    def test_replay_endpoint_is_idempotent(self, client, api_channel):
        client.post("/orders", json={"itemId": ["a", "b"], "orderId": "o1"})
        assert wait_for(lambda: api_channel.get_sent_count() == 2)

        response = client.post("/outbox/replay")

        assert response.status_code == 200
        assert response.json() == {
            "eventsRead": 1,
            "eventsReplayed": 1,
            "notificationsSent": 0,
            "failedOrders": [],
        }
        assert api_channel.get_sent_count() == 2

    def test_startup_replays_missed_events(self, settings: Settings, api_channel):
        # An order admitted while the app and its consumer were down
        offline = OrderingService(store=create_order_store(settings.orders_path))
        asyncio.run(offline.submit(["a", "b"], order_id="offline-1"))

        app = create_app(settings=settings, channel=api_channel)
        with TestClient(app):
            assert len(api_channel.find_messages_for_order("offline-1")) == 2

    def test_startup_replay_can_be_disabled(self, data_dir: Path, api_channel):
        settings = Settings(data_dir=data_dir, replay_on_startup=False)
        offline = OrderingService(store=create_order_store(settings.orders_path))
        asyncio.run(offline.submit(["a"], order_id="offline-1"))

        app = create_app(settings=settings, channel=api_channel)
        with TestClient(app):
            assert api_channel.sent_messages == []


class TestReadEndpoints:

    def test_list_orders_and_outbox(self, client):
        client.post("/orders", json={"itemId": ["a"], "orderId": "o1"})
        client.post("/orders", json={"itemId": ["b"], "orderId": "o2"})

        orders = client.get("/orders").json()
        outbox = client.get("/outbox").json()

        assert [o["orderId"] for o in orders] == ["o1", "o2"]
        assert [e["orderId"] for e in outbox] == ["o1", "o2"]
        assert all(e["type"] == "order.created" and e["version"] == 1 for e in outbox)

    def test_get_order(self, client):
        client.post("/orders", json={"itemId": ["a", "b"], "orderId": "o1"})

        response = client.get("/orders/o1")

        assert response.status_code == 200
        assert response.json()["itemId"] == ["a", "b"]
        assert response.json()["createdAt"].endswith("Z")

    def test_get_unknown_order(self, client):
        response = client.get("/orders/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "order not found"}

    def test_stores_created_on_startup(self, client, settings: Settings):
        assert settings.orders_path.exists()
        assert settings.processed_path.exists()
