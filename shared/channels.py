"""
Notification channel for the order pipeline.

The channel performs the observable side effect of the notification
consumer: one log line per (order, item). In a real system this would call
an email/SMS/push provider.

Design decisions:
- All sends are logged for visibility
- The channel tracks sent messages for test assertions
- Channel failures can be simulated for testing
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from shared.models import utcnow

logger = logging.getLogger("notifications")


@dataclass
class NotificationResult:
    """
    Result of a notification send attempt.

    Captures success/failure and metadata for debugging and testing.
    """
    success: bool
    order_id: str
    item_id: str
    timestamp: datetime = field(default_factory=utcnow)
    error: Optional[str] = None

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"{status} order={self.order_id} item={self.item_id}"


class LogNotificationChannel:
    """
    Notification channel that writes to the log.

    Logs every send and keeps a history for test assertions.
    """

    def __init__(self, fail_rate: float = 0.0):
        """
        Initialize the channel.

        Args:
            fail_rate: Probability of send failure (0.0 to 1.0), for testing.
        """
        self.fail_rate = fail_rate
        self.sent_messages: list[NotificationResult] = []

    def send(self, order_id: str, item_id: str) -> NotificationResult:
        """
        Notify that an item of an order was accepted.

        Returns:
            NotificationResult indicating success/failure
        """
        if random.random() < self.fail_rate:
            result = NotificationResult(
                success=False,
                order_id=order_id,
                item_id=item_id,
                error="Simulated notification failure",
            )
            logger.error(f"notification.failed orderId={order_id} itemId={item_id} error={result.error}")
        else:
            result = NotificationResult(success=True, order_id=order_id, item_id=item_id)
            logger.info(f"notification.sent orderId={order_id} itemId={item_id}")

        self.sent_messages.append(result)
        return result

    def get_sent_count(self) -> int:
        """Get the number of successful sends."""
        return len(self.get_successful_sends())

    def get_successful_sends(self) -> list[NotificationResult]:
        """Get all successful sends."""
        return [m for m in self.sent_messages if m.success]

    def find_messages_for_order(self, order_id: str) -> list[NotificationResult]:
        """Get the successful sends for one order."""
        return [m for m in self.get_successful_sends() if m.order_id == order_id]

    def clear_history(self) -> None:
        """Clear sent message history (useful between tests)."""
        self.sent_messages.clear()
