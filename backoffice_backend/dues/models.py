# dues/models.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from branches.models import Branch
from customers.models import Customer
from orders.models import Order

User = settings.AUTH_USER_MODEL


class DuePayment(models.Model):
    """
    Money received from a customer against their dues.

    GUARANTEES:
    - amount is the full cash received and never changes
    - sum(allocations.amount) + unapplied_amount == amount
    - unapplied_amount is standing credit; it is never auto-applied

    Created only by dues.services.allocation.record_payment.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Same rule as Order.customer: placeholder customers have no row.
    customer = models.ForeignKey(
        Customer,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="due_payments",
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    unapplied_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    payment_method = models.CharField(max_length=32)
    payment_date = models.DateTimeField(default=timezone.now)

    reference = models.CharField(max_length=128, blank=True, default="")
    note = models.TextField(blank=True, default="")

    # Opaque receipt / slip references (URLs, file keys ...)
    payment_slips = models.JSONField(default=list, blank=True)

    branch = models.ForeignKey(
        Branch,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="due_payments",
    )
    recorded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="due_payments_recorded",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-payment_date", "-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=Decimal("0.00")),
                name="due_payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(unapplied_amount__gte=Decimal("0.00"))
                & Q(unapplied_amount__lte=F("amount")),
                name="due_payment_unapplied_within_amount",
            ),
        ]
        indexes = [
            models.Index(fields=["customer", "payment_date"], name="due_pay_customer_date_idx"),
            models.Index(fields=["branch", "payment_date"], name="due_pay_branch_date_idx"),
        ]

    def clean(self):
        if self.amount is not None and self.amount <= Decimal("0.00"):
            raise ValidationError({"amount": "amount must be > 0"})

        if not (self.payment_method or "").strip():
            raise ValidationError({"payment_method": "payment_method is required"})

        if self.payment_slips is not None and not isinstance(self.payment_slips, list):
            raise ValidationError({"payment_slips": "payment_slips must be a list"})

    def save(self, *args, **kwargs):
        self.payment_method = (self.payment_method or "").strip().lower()
        self.full_clean(exclude=["customer"])
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.amount} via {self.payment_method} ({self.payment_date:%Y-%m-%d})"


class DuePaymentAllocation(models.Model):
    """
    The part of a DuePayment applied to one Order.

    PROTECT on both sides: a payment's allocations are removed explicitly
    (and optionally reversed) before the payment itself.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment = models.ForeignKey(
        DuePayment,
        on_delete=models.PROTECT,
        related_name="allocations",
    )
    order = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name="due_allocations",
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=Decimal("0.00")),
                name="due_allocation_amount_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["order"], name="due_alloc_order_idx"),
        ]

    def __str__(self):
        return f"{self.amount} -> order {self.order_id}"
