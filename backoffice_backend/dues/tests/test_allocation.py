from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum
from django.test import TestCase, override_settings
from django.utils import timezone

from customers.models import Customer
from dues.models import DuePayment, DuePaymentAllocation
from dues.services.allocation import (
    build_fifo_allocations,
    bulk_delete_due_payments,
    delete_due_payment,
    record_payment,
    update_due_payment,
)
from dues.services.exceptions import (
    AllocationExceedsOwedError,
    LedgerConsistencyError,
    LedgerNotFoundError,
    LedgerValidationError,
)
from dues.services.ledger import get_customer_due_summary
from orders.models import Order


def make_due_order(customer, number, total, *, days_ago=0, **extra):
    fields = {
        "order_number": str(number),
        "customer": customer,
        "customer_name": customer.name,
        "subtotal": total,
        "total": total,
        "due_amount": total,
        "paid_amount": "0.00",
        "payment_status": Order.PAYMENT_DUE,
        "status": Order.STATUS_COMPLETED,
        "created_at": timezone.now() - timedelta(days=days_ago),
    }
    fields.update(extra)
    return Order.objects.create(**fields)


class LedgerInvariantsMixin:
    def assertPaymentBalanced(self, payment):
        payment.refresh_from_db()
        allocated = payment.allocations.aggregate(s=Sum("amount"))["s"] or Decimal("0.00")
        self.assertEqual(allocated + payment.unapplied_amount, payment.amount)

    def assertOrderConsistent(self, order):
        order.refresh_from_db()
        owed = order.total if order.due_amount is None else order.due_amount
        self.assertGreaterEqual(order.paid_amount, Decimal("0.00"))
        self.assertLessEqual(order.paid_amount, owed)
        if order.paid_amount >= owed:
            self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        elif order.paid_amount > 0:
            self.assertEqual(order.payment_status, Order.PAYMENT_PARTIAL)


class RecordPaymentScenarioTests(LedgerInvariantsMixin, TestCase):
    """
    GUARANTEES:
    - Explicit allocations are applied exactly
    - Leftover money becomes unapplied credit
    - FIFO pays the oldest debt first
    """

    def setUp(self):
        self.customer = Customer.objects.create(name="Akosua", phone="0240")

    def test_partial_payment_then_settlement_with_credit(self):
        order = make_due_order(self.customer, 1, "100.00")

        first = record_payment(
            customer_id=self.customer.id,
            amount="60.00",
            payment_method="cash",
            allocations=[{"order_id": order.id, "amount": "60.00"}],
        )
        order.refresh_from_db()
        self.assertEqual(order.paid_amount, Decimal("60.00"))
        self.assertEqual(order.payment_status, Order.PAYMENT_PARTIAL)
        self.assertEqual(first.unapplied_amount, Decimal("0.00"))

        second = record_payment(
            customer_id=self.customer.id,
            amount="50.00",
            payment_method="cash",
            allocations=[{"order_id": order.id, "amount": "40.00"}],
        )
        order.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(order.paid_amount, Decimal("100.00"))
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(second.unapplied_amount, Decimal("10.00"))

        self.assertPaymentBalanced(first)
        self.assertPaymentBalanced(second)
        self.assertOrderConsistent(order)

    def test_fifo_pays_oldest_order_first(self):
        o1 = make_due_order(self.customer, 1, "30.00", days_ago=2)
        o2 = make_due_order(self.customer, 2, "20.00", days_ago=1)

        payment = record_payment(
            customer_id=self.customer.id,
            amount="35.00",
            payment_method="transfer",
        )

        o1.refresh_from_db()
        o2.refresh_from_db()
        self.assertEqual(o1.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(o1.paid_amount, Decimal("30.00"))
        self.assertEqual(o2.payment_status, Order.PAYMENT_PARTIAL)
        self.assertEqual(o2.paid_amount, Decimal("5.00"))

        amounts = list(
            payment.allocations.order_by("order__created_at").values_list("amount", flat=True)
        )
        self.assertEqual(amounts, [Decimal("30.00"), Decimal("5.00")])
        self.assertPaymentBalanced(payment)

    def test_fifo_leaves_untouched_orders_alone(self):
        make_due_order(self.customer, 1, "10.00", days_ago=3)
        later = make_due_order(self.customer, 2, "10.00", days_ago=1)

        record_payment(customer_id=self.customer.id, amount="10.00", payment_method="cash")

        later.refresh_from_db()
        self.assertEqual(later.paid_amount, Decimal("0.00"))
        self.assertEqual(later.payment_status, Order.PAYMENT_DUE)

    def test_fifo_breaks_created_at_ties_by_order_number(self):
        when = timezone.now() - timedelta(days=1)
        o10 = make_due_order(self.customer, 10, "10.00", created_at=when)
        o9 = make_due_order(self.customer, 9, "10.00", created_at=when)

        plan = build_fifo_allocations(customer_id=self.customer.id, amount="15.00")

        self.assertEqual([p["order_id"] for p in plan], [o9.id, o10.id])
        self.assertEqual([p["amount"] for p in plan], [Decimal("10.00"), Decimal("5.00")])

    def test_fifo_overpayment_becomes_credit(self):
        make_due_order(self.customer, 1, "25.00")

        payment = record_payment(customer_id=self.customer.id, amount="40.00", payment_method="cash")

        self.assertEqual(payment.unapplied_amount, Decimal("15.00"))
        self.assertPaymentBalanced(payment)

    def test_empty_allocation_list_keeps_everything_as_credit(self):
        order = make_due_order(self.customer, 1, "25.00")

        payment = record_payment(
            customer_id=self.customer.id,
            amount="12.00",
            payment_method="cash",
            allocations=[],
        )

        order.refresh_from_db()
        self.assertEqual(order.paid_amount, Decimal("0.00"))
        self.assertEqual(payment.unapplied_amount, Decimal("12.00"))

    def test_partial_order_with_prepaid_amount_respects_owed(self):
        order = make_due_order(
            self.customer,
            1,
            "100.00",
            due_amount="100.00",
            paid_amount="30.00",
            payment_status=Order.PAYMENT_PARTIAL,
        )

        payment = record_payment(customer_id=self.customer.id, amount="100.00", payment_method="cash")

        order.refresh_from_db()
        self.assertEqual(order.paid_amount, Decimal("100.00"))
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(payment.unapplied_amount, Decimal("30.00"))

    def test_duplicate_order_in_list_is_cumulative(self):
        order = make_due_order(self.customer, 1, "50.00")

        record_payment(
            customer_id=self.customer.id,
            amount="50.00",
            payment_method="cash",
            allocations=[
                {"order_id": order.id, "amount": "20.00"},
                {"order_id": order.id, "amount": "30.00"},
            ],
        )

        order.refresh_from_db()
        self.assertEqual(order.paid_amount, Decimal("50.00"))
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(DuePaymentAllocation.objects.filter(order=order).count(), 2)


class RecordPaymentRejectionTests(TestCase):
    """
    Every rejection leaves no payment, no allocation and no order change.
    """

    def setUp(self):
        self.customer = Customer.objects.create(name="Kojo")
        self.other = Customer.objects.create(name="Adjoa")
        self.order = make_due_order(self.customer, 1, "40.00")

    def assertNothingWritten(self):
        self.assertEqual(DuePayment.objects.count(), 0)
        self.assertEqual(DuePaymentAllocation.objects.count(), 0)
        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_amount, Decimal("0.00"))
        self.assertEqual(self.order.payment_status, Order.PAYMENT_DUE)

    def test_non_positive_amount(self):
        for bad in ("0", "-5", None):
            with self.assertRaises(LedgerValidationError):
                record_payment(customer_id=self.customer.id, amount=bad, payment_method="cash")
        self.assertNothingWritten()

    def test_missing_allocation_fields(self):
        with self.assertRaises(LedgerValidationError):
            record_payment(
                customer_id=self.customer.id,
                amount="10.00",
                payment_method="cash",
                allocations=[{"amount": "10.00"}],
            )
        self.assertNothingWritten()

    def test_allocations_above_payment_amount(self):
        with self.assertRaises(LedgerValidationError):
            record_payment(
                customer_id=self.customer.id,
                amount="10.00",
                payment_method="cash",
                allocations=[{"order_id": self.order.id, "amount": "10.01"}],
            )
        self.assertNothingWritten()

    def test_allocation_above_remaining_owed(self):
        with self.assertRaises(AllocationExceedsOwedError):
            record_payment(
                customer_id=self.customer.id,
                amount="50.00",
                payment_method="cash",
                allocations=[{"order_id": self.order.id, "amount": "45.00"}],
            )
        self.assertNothingWritten()

    def test_duplicate_entries_cannot_overpay_together(self):
        with self.assertRaises(AllocationExceedsOwedError):
            record_payment(
                customer_id=self.customer.id,
                amount="60.00",
                payment_method="cash",
                allocations=[
                    {"order_id": self.order.id, "amount": "30.00"},
                    {"order_id": self.order.id, "amount": "30.00"},
                ],
            )
        self.assertNothingWritten()

    def test_order_of_another_customer(self):
        with self.assertRaises(LedgerConsistencyError):
            record_payment(
                customer_id=self.other.id,
                amount="10.00",
                payment_method="cash",
                allocations=[{"order_id": self.order.id, "amount": "10.00"}],
            )
        self.assertNothingWritten()

    def test_orders_that_are_not_due_cannot_take_money(self):
        settled = Order.objects.create(
            order_number="2",
            customer=self.customer,
            subtotal="50.00",
            total="50.00",
            payment_status=Order.PAYMENT_PAID,
            status=Order.STATUS_COMPLETED,
        )
        unpaid_draft = Order.objects.create(
            order_number="3",
            customer=self.customer,
            subtotal="25.00",
            total="25.00",
            payment_status=Order.PAYMENT_PENDING,
            status=Order.STATUS_DRAFT,
        )
        balance_before = get_customer_due_summary(self.customer.id)["balance"]

        for target in (settled, unpaid_draft):
            with self.assertRaises(LedgerConsistencyError):
                record_payment(
                    customer_id=self.customer.id,
                    amount="10.00",
                    payment_method="cash",
                    allocations=[{"order_id": target.id, "amount": "10.00"}],
                )
            target.refresh_from_db()
            self.assertEqual(target.paid_amount, Decimal("0.00"))

        settled.refresh_from_db()
        self.assertEqual(settled.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(get_customer_due_summary(self.customer.id)["balance"], balance_before)
        self.assertNothingWritten()

    def test_fully_paid_order_rejects_further_allocation(self):
        record_payment(
            customer_id=self.customer.id,
            amount="40.00",
            payment_method="cash",
            allocations=[{"order_id": self.order.id, "amount": "40.00"}],
        )

        with self.assertRaises(LedgerConsistencyError):
            record_payment(
                customer_id=self.customer.id,
                amount="5.00",
                payment_method="cash",
                allocations=[{"order_id": self.order.id, "amount": "5.00"}],
            )

        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_amount, Decimal("40.00"))
        self.assertEqual(DuePayment.objects.count(), 1)

    def test_unknown_order(self):
        with self.assertRaises(LedgerNotFoundError):
            record_payment(
                customer_id=self.customer.id,
                amount="10.00",
                payment_method="cash",
                allocations=[
                    {"order_id": "00000000-0000-0000-0000-000000000001", "amount": "10.00"}
                ],
            )
        self.assertNothingWritten()

    def test_unknown_customer(self):
        with self.assertRaises(LedgerNotFoundError):
            record_payment(
                customer_id="00000000-0000-0000-0000-000000000002",
                amount="10.00",
                payment_method="cash",
            )
        self.assertNothingWritten()

    def test_failure_mid_list_rolls_back_earlier_allocations(self):
        second = make_due_order(self.customer, 2, "5.00")

        with self.assertRaises(AllocationExceedsOwedError):
            record_payment(
                customer_id=self.customer.id,
                amount="20.00",
                payment_method="cash",
                allocations=[
                    {"order_id": self.order.id, "amount": "10.00"},
                    {"order_id": second.id, "amount": "6.00"},
                ],
            )

        self.assertNothingWritten()
        second.refresh_from_db()
        self.assertEqual(second.paid_amount, Decimal("0.00"))


class PlaceholderCustomerPaymentTests(TestCase):
    def test_payment_for_customer_known_only_from_orders(self):
        ghost = Customer.objects.create(name="Ghost")
        order = make_due_order(ghost, 1, "20.00")
        ghost_id = ghost.id
        Customer.objects.filter(id=ghost_id).delete()

        payment = record_payment(customer_id=ghost_id, amount="20.00", payment_method="cash")

        order.refresh_from_db()
        self.assertEqual(payment.customer_id, ghost_id)
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)


class PaymentCorrectionTests(LedgerInvariantsMixin, TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Yaa")
        self.o1 = make_due_order(self.customer, 1, "30.00", days_ago=2)
        self.o2 = make_due_order(self.customer, 2, "20.00", days_ago=1)
        self.payment = record_payment(
            customer_id=self.customer.id,
            amount="35.00",
            payment_method="cash",
        )

    def test_update_never_touches_balances(self):
        new_date = timezone.now() - timedelta(days=5)

        updated = update_due_payment(
            payment_id=self.payment.id,
            payment_method="Bank",
            payment_date=new_date,
            reference="TRX-1",
            note="corrected",
        )

        self.assertEqual(updated.payment_method, "bank")
        self.assertEqual(updated.payment_date, new_date)
        self.assertEqual(updated.amount, Decimal("35.00"))
        self.o1.refresh_from_db()
        self.o2.refresh_from_db()
        self.assertEqual(self.o1.paid_amount, Decimal("30.00"))
        self.assertEqual(self.o2.paid_amount, Decimal("5.00"))
        self.assertEqual(self.payment.allocations.count(), 2)

    def test_update_unknown_payment(self):
        with self.assertRaises(LedgerNotFoundError):
            update_due_payment(
                payment_id="00000000-0000-0000-0000-000000000003", note="x"
            )

    def test_delete_reverses_allocations_by_default(self):
        result = delete_due_payment(payment_id=self.payment.id)

        self.assertEqual(result["allocations_deleted"], 2)
        self.assertEqual(result["orders_reversed"], 2)
        self.assertFalse(DuePayment.objects.filter(id=self.payment.id).exists())
        self.assertEqual(DuePaymentAllocation.objects.count(), 0)

        for order in (self.o1, self.o2):
            order.refresh_from_db()
            self.assertEqual(order.paid_amount, Decimal("0.00"))
            self.assertEqual(order.payment_status, Order.PAYMENT_DUE)

    def test_delete_restores_partial_when_other_payments_remain(self):
        other = record_payment(
            customer_id=self.customer.id,
            amount="5.00",
            payment_method="cash",
            allocations=[{"order_id": self.o2.id, "amount": "5.00"}],
        )

        delete_due_payment(payment_id=self.payment.id)

        self.o2.refresh_from_db()
        self.assertEqual(self.o2.paid_amount, Decimal("5.00"))
        self.assertEqual(self.o2.payment_status, Order.PAYMENT_PARTIAL)
        self.assertPaymentBalanced(other)
        self.assertOrderConsistent(self.o2)

    @override_settings(DUE_PAYMENT_DELETE_REVERSES_ALLOCATIONS=False)
    def test_delete_can_leave_balances_untouched(self):
        result = delete_due_payment(payment_id=self.payment.id)

        self.assertEqual(result["orders_reversed"], 0)
        self.assertEqual(DuePaymentAllocation.objects.count(), 0)
        self.o1.refresh_from_db()
        self.assertEqual(self.o1.paid_amount, Decimal("30.00"))
        self.assertEqual(self.o1.payment_status, Order.PAYMENT_PAID)

    def test_bulk_delete_collects_errors(self):
        missing = "00000000-0000-0000-0000-000000000004"

        result = bulk_delete_due_payments(ids=[self.payment.id, missing])

        self.assertEqual(result["deleted_count"], 1)
        self.assertEqual(len(result["errors"]), 1)
        self.assertEqual(result["errors"][0]["id"], missing)
        self.assertEqual(DuePayment.objects.count(), 0)
