"""
Error taxonomy for the order pipeline.

Each error class corresponds to one failure category:
- ValidationError: malformed request, caller must fix input (nothing written)
- ConflictError: uniqueness violation (nothing written)
- StorageError: durable read/write failed, the request must not proceed
- DeliveryError: consumer-side failure, contained at the bus boundary and
  recovered only by replaying the outbox

The HTTP layer maps these to status codes; the core only raises them.
"""


class OrderPipelineError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderPipelineError):
    """The request is malformed."""


class ConflictError(OrderPipelineError):
    """The request violates orderId or itemId uniqueness."""


class StorageError(OrderPipelineError):
    """A durable read or write failed."""


class DeliveryError(OrderPipelineError):
    """
    The notification side effect failed for some items of an event.

    Attributes:
        order_id: Order whose event was being processed
        failed_items: Items left unmarked (they will be retried on replay)
    """

    def __init__(self, order_id: str, failed_items: list[str]):
        super().__init__(
            f"notification failed for order {order_id}: {', '.join(failed_items)}"
        )
        self.order_id = order_id
        self.failed_items = failed_items
