"""
Order id allocation.

Counters live at `counters/{name}` and only ever move through `allocate`,
which rides on the store's compare-and-swap transaction. Ids are never reused,
even when the order write that follows fails.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from ricequote.exceptions import AllocationFailure
from ricequote.models.order import OrderType
from ricequote.services.document_store import DocumentStore

logger = logging.getLogger(__name__)


def counter_path(counter_name: str) -> str:
    return f"counters/{counter_name}"


class OrderIdAllocator:

    def __init__(self, store: DocumentStore):
        self.store = store

    def allocate(self, counter_name: str) -> int:
        """Increment the named counter and return the new value."""
        def increment(current):
            return (int(current) if current else 0) + 1

        try:
            result = self.store.transaction(counter_path(counter_name), increment)
        except SQLAlchemyError as e:
            logger.error(f"[ORDER_ID] Counter {counter_name} transaction error: {e}")
            raise AllocationFailure(counter_name, str(e)) from e

        if not result.committed:
            logger.error(f"[ORDER_ID] Counter {counter_name} did not commit after {result.attempts} attempts")
            raise AllocationFailure(counter_name, 'transaction did not commit')

        logger.info(f"[ORDER_ID] {counter_name} -> {result.value}")
        return int(result.value)

    def allocate_quote_id(self, order_type: OrderType) -> str:
        """BulkQuote-<n> for bulk and cart orders, SampleCourier-<n> for samples."""
        number = self.allocate(order_type.counter_name)
        return f"{order_type.id_prefix}-{number}"
