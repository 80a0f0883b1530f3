"""
In-process event bus for the order pipeline.

This module provides a pub/sub channel that lets the order intake publish
"order.created" facts and the notification consumer receive them. In a real
system, this would be replaced by a message broker like Kafka or RabbitMQ.

Design decisions:
- Deferred delivery: publish() only enqueues; a dispatcher task drains the
  queue on a later turn of the event loop, so handlers never run inline and
  a slow or failing handler never blocks or fails the publisher
- Topic-based subscriptions, delivered in subscription order
- Handlers registered at publish time are the only targets; with no
  subscriber the message is dropped
- No persistence and no retry: durability comes from the outbox
- Each handler receives its own deep copy of the payload
"""

import asyncio
import copy
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger("event_bus")

WILDCARD = "*"

# Handlers may be plain functions or coroutine functions
EventHandler = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class Subscription:
    """
    Cancellable registration of a handler on a topic.

    Deliveries already queued for a cancelled subscription are skipped.
    """
    topic: str
    handler: EventHandler
    _bus: "EventBus" = field(repr=False)
    active: bool = True

    def cancel(self) -> bool:
        """Remove this registration. Returns False if it was already cancelled."""
        if not self.active:
            return False
        return self._bus._remove(self)


@dataclass
class _Delivery:
    topic: str
    payload: dict[str, Any]
    subscriptions: list[Subscription]


class EventBus:
    """
    Asynchronous in-memory event bus implementing pub/sub.

    Example usage:
        bus = EventBus()

        async def handle_order_created(payload):
            print(f"Order created: {payload['orderId']}")

        subscription = bus.subscribe("order.created", handle_order_created)

        # Inside a running event loop
        bus.publish("order.created", {"orderId": "o1", "itemId": ["a"]})
        await bus.drain()  # wait until handlers have run (tests, shutdown)

        subscription.cancel()
        await bus.close()
    """

    def __init__(self):
        """Initialize the event bus with empty subscriber lists."""
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)
        self._queue: Optional[asyncio.Queue] = None
        self._dispatcher: Optional[asyncio.Task] = None

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, topic: str, handler: EventHandler) -> Subscription:
        """
        Subscribe to messages on a topic.

        Args:
            topic: The topic to subscribe to (e.g., "order.created")
            handler: Function or coroutine function called with the payload

        Returns:
            A Subscription that can be cancelled

        Note: The same handler can be subscribed multiple times (will be called multiple times).
        """
        subscription = Subscription(topic=topic, handler=handler, _bus=self)
        self._subscribers[topic].append(subscription)
        logger.debug(f"Subscribed handler to '{topic}'")
        return subscription

    def subscribe_all(self, handler: EventHandler) -> Subscription:
        """Subscribe to every topic (useful for logging, debugging, or audit)."""
        return self.subscribe(WILDCARD, handler)

    def unsubscribe(self, topic: str, handler: EventHandler) -> bool:
        """
        Unsubscribe the first registration of a handler from a topic.

        Returns:
            True if the handler was found and removed, False otherwise
        """
        for subscription in self._subscribers.get(topic, []):
            if subscription.handler == handler:
                return self._remove(subscription)
        return False

    def _remove(self, subscription: Subscription) -> bool:
        try:
            self._subscribers[subscription.topic].remove(subscription)
        except ValueError:
            return False
        subscription.active = False
        logger.debug(f"Unsubscribed handler from '{subscription.topic}'")
        return True

    def get_subscriber_count(self, topic: str) -> int:
        """Get the number of subscribers for a topic."""
        return len(self._subscribers.get(topic, []))

    def clear_subscribers(self) -> None:
        """Remove all subscribers (useful for testing)."""
        for subscriptions in self._subscribers.values():
            for subscription in subscriptions:
                subscription.active = False
        self._subscribers.clear()

    # =========================================================================
    # Publishing
    # =========================================================================

    def publish(self, topic: str, payload: dict[str, Any]) -> int:
        """
        Schedule delivery of a message to the current subscribers.

        Must be called from inside a running event loop. Returns before any
        handler runs.

        Returns:
            Number of handlers the message was scheduled for
        """
        subscriptions = list(self._subscribers.get(topic, [])) + list(
            self._subscribers.get(WILDCARD, [])
        )
        if not subscriptions:
            logger.warning(f"No handlers for topic '{topic}', message dropped")
            return 0

        self._ensure_dispatcher()
        self._queue.put_nowait(
            _Delivery(topic=topic, payload=copy.deepcopy(payload), subscriptions=subscriptions)
        )
        logger.info(f"Published '{topic}' to {len(subscriptions)} handler(s)")
        return len(subscriptions)

    def _ensure_dispatcher(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.get_running_loop().create_task(
                self._dispatch_loop(), name="event-bus-dispatcher"
            )

    async def _dispatch_loop(self) -> None:
        while True:
            delivery = await self._queue.get()
            try:
                await self._deliver(delivery)
            finally:
                self._queue.task_done()

    async def _deliver(self, delivery: _Delivery) -> None:
        for subscription in delivery.subscriptions:
            if not subscription.active:
                continue
            try:
                result = subscription.handler(copy.deepcopy(delivery.payload))
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Handler raised exception for '{delivery.topic}': {e}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def pending(self) -> int:
        """Number of deliveries queued but not yet handled."""
        return self._queue.qsize() if self._queue is not None else 0

    async def drain(self) -> None:
        """Wait until every queued delivery has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Drain outstanding deliveries and stop the dispatcher."""
        await self.drain()
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None
