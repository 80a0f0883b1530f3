"""
Shared infrastructure for the order pipeline.

- Domain models (Order) and timestamp helpers
- JSON-backed record store with atomic transactions
- Error taxonomy
- Notification channel
- Settings and logging setup
"""

from shared.models import Order, processed_mark_key
from shared.record_store import JsonRecordStore, UnitOfWork
from shared.errors import (
    OrderPipelineError,
    ValidationError,
    ConflictError,
    StorageError,
    DeliveryError,
)
from shared.channels import LogNotificationChannel, NotificationResult
from shared.config import Settings, configure_logging, get_settings

__all__ = [
    "Order",
    "processed_mark_key",
    "JsonRecordStore",
    "UnitOfWork",
    "OrderPipelineError",
    "ValidationError",
    "ConflictError",
    "StorageError",
    "DeliveryError",
    "LogNotificationChannel",
    "NotificationResult",
    "Settings",
    "configure_logging",
    "get_settings",
]
