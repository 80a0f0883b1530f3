"""
Domain services that publish events.

The ordering service admits orders and publishes "order.created". It does
NOT know the notification consumer exists; it just writes its outbox and
publishes.
"""

from order_pipeline.services.ordering import OrderAccepted, OrderingService, create_order_store

__all__ = [
    "OrderAccepted",
    "OrderingService",
    "create_order_store",
]
