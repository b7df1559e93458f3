# orders/services/sequence.py

"""
ORDER NUMBER SEQUENCE

One counter row ("order-counter"), incremented under SELECT ... FOR UPDATE.

The increment runs in an atomic block, so when the caller already holds a
transaction (order creation) the number and the order that uses it commit or
roll back together. No gaps on abort, no duplicates under concurrency.
"""

from __future__ import annotations

import logging

from django.db import DatabaseError, transaction

from orders.models import OrderCounter
from orders.services.exceptions import SequenceError


logger = logging.getLogger("orders")


def next_order_number() -> str:
    key = OrderCounter.ORDER_COUNTER_KEY

    try:
        with transaction.atomic():
            OrderCounter.objects.get_or_create(key=key, defaults={"counter_value": 0})

            counter = OrderCounter.objects.select_for_update().get(key=key)
            counter.counter_value += 1
            counter.save(update_fields=["counter_value"])
    except DatabaseError as exc:
        logger.exception("Order number allocation failed")
        raise SequenceError("Could not allocate an order number") from exc

    return str(counter.counter_value)


def current_order_number() -> int:
    """Last number handed out (0 when none yet). Read-only."""
    return (
        OrderCounter.objects.filter(key=OrderCounter.ORDER_COUNTER_KEY)
        .values_list("counter_value", flat=True)
        .first()
        or 0
    )
