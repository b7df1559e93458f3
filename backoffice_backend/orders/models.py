# orders/models.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from branches.models import Branch
from customers.models import Customer

User = settings.AUTH_USER_MODEL


class Order(models.Model):
    """
    A sale transaction as seen by the due ledger.

    Ledger fields:
    - total: amount charged (subtotal less discount)
    - due_amount: amount owed on credit; NULL means "owed = total"
    - paid_amount: settled so far by due payments
    - payment_status: derived from paid_amount vs owed

    GUARANTEES:
    - order_number is assigned once (sequence generator) and never changes
    - 0 <= paid_amount <= owed at all times
    """

    SOURCE_POS = "pos"
    SOURCE_WEB = "web"
    SOURCE_DUE_MANAGEMENT = "due-management"

    SOURCE_CHOICES = [
        (SOURCE_POS, "POS"),
        (SOURCE_WEB, "Web"),
        (SOURCE_DUE_MANAGEMENT, "Due management"),
    ]

    DISCOUNT_AMOUNT = "amount"
    DISCOUNT_PERCENTAGE = "percentage"

    DISCOUNT_TYPE_CHOICES = [
        (DISCOUNT_AMOUNT, "Amount"),
        (DISCOUNT_PERCENTAGE, "Percentage"),
    ]

    STATUS_DRAFT = "draft"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    PAYMENT_PAID = "paid"
    PAYMENT_DUE = "due"
    PAYMENT_PARTIAL = "partial"
    PAYMENT_PENDING = "pending"

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_DUE, "Due"),
        (PAYMENT_PARTIAL, "Partial"),
        (PAYMENT_PENDING, "Pending"),
    ]

    # Orders still carrying a balance
    OPEN_PAYMENT_STATUSES = (PAYMENT_DUE, PAYMENT_PARTIAL)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Sequence-assigned order / invoice number",
    )

    # No DB-level FK: legacy orders may point at customers that were never
    # materialized as rows. The ledger synthesizes placeholders for those.
    customer = models.ForeignKey(
        Customer,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="orders",
    )
    customer_name = models.CharField(max_length=255, blank=True, default="")
    customer_phone = models.CharField(max_length=50, blank=True, default="")

    branch = models.ForeignKey(
        Branch,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )

    order_source = models.CharField(
        max_length=32, choices=SOURCE_CHOICES, default=SOURCE_POS
    )

    subtotal = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    discount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    discount_type = models.CharField(
        max_length=16, choices=DISCOUNT_TYPE_CHOICES, default=DISCOUNT_AMOUNT
    )
    total = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    due_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    paid_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    status = models.CharField(
        max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT
    )
    payment_status = models.CharField(
        max_length=16, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING
    )
    payment_method = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="cash/card/bank/mobile/split ...",
    )

    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders_created",
    )

    # Overridable so back-dated due entries keep their real position in FIFO.
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(total__gte=Decimal("0.00")),
                name="order_total_nonnegative",
            ),
            models.CheckConstraint(
                condition=Q(paid_amount__gte=Decimal("0.00")),
                name="order_paid_nonnegative",
            ),
            models.CheckConstraint(
                condition=Q(due_amount__isnull=True) | Q(due_amount__gte=Decimal("0.00")),
                name="order_due_nonnegative",
            ),
            models.CheckConstraint(
                condition=(
                    Q(due_amount__isnull=True, paid_amount__lte=F("total"))
                    | Q(due_amount__isnull=False, paid_amount__lte=F("due_amount"))
                ),
                name="order_paid_within_owed",
            ),
        ]
        indexes = [
            models.Index(fields=["customer", "payment_status"], name="order_customer_status_idx"),
            models.Index(fields=["branch", "created_at"], name="order_branch_created_idx"),
            models.Index(fields=["payment_status"], name="order_payment_status_idx"),
        ]

    @property
    def owed(self) -> Decimal:
        return self.total if self.due_amount is None else self.due_amount

    def clean(self):
        if not (self.order_number or "").strip():
            raise ValidationError({"order_number": "order_number is required"})

        if self.total is not None and self.total < Decimal("0.00"):
            raise ValidationError({"total": "total cannot be negative"})

        if self.paid_amount is not None and self.paid_amount < Decimal("0.00"):
            raise ValidationError({"paid_amount": "paid_amount cannot be negative"})

        if self.due_amount is not None and self.due_amount < Decimal("0.00"):
            raise ValidationError({"due_amount": "due_amount cannot be negative"})

        if (
            self.paid_amount is not None
            and self.total is not None
            and self.paid_amount > self.owed
        ):
            raise ValidationError(
                {"paid_amount": "paid_amount cannot exceed the owed amount"}
            )

        if not self._state.adding and self.pk:
            previous = (
                Order.objects.filter(pk=self.pk)
                .values_list("order_number", flat=True)
                .first()
            )
            if previous and previous != self.order_number:
                raise ValidationError(
                    {"order_number": "order_number cannot change once assigned"}
                )

    def save(self, *args, **kwargs):
        if self.order_number is not None:
            self.order_number = str(self.order_number).strip()

        if self.status == self.STATUS_COMPLETED and not self.completed_at:
            self.completed_at = timezone.now()

        # customer is validated by the services; orders may reference legacy ids
        self.full_clean(exclude=["customer"])
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"#{self.order_number} | {self.total} ({self.payment_status})"


class OrderCounter(models.Model):
    """
    Single-row counter behind order numbers.

    Only the sequence generator touches it, always under a row lock.
    """

    ORDER_COUNTER_KEY = "order-counter"

    key = models.CharField(max_length=64, primary_key=True)
    counter_value = models.PositiveBigIntegerField(default=0)

    def __str__(self):
        return f"{self.key}={self.counter_value}"
