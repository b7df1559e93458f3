from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from customers.models import Customer
from dues.models import DuePayment
from orders.models import Order

from .test_allocation import make_due_order

User = get_user_model()

BASE = "/api/dues"


class DueApiTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()

        self.manager = User.objects.create_user(
            email="manager@example.com", password="pass", role="manager"
        )
        self.cashier = User.objects.create_user(
            email="cashier@example.com", password="pass", role="cashier"
        )
        self.waiter = User.objects.create_user(
            email="waiter@example.com", password="pass", role="waiter"
        )

        self.customer = Customer.objects.create(name="Yaw", phone="0277")
        self.old = make_due_order(self.customer, 1, "40.00", days_ago=5)
        self.new = make_due_order(self.customer, 2, "60.00", days_ago=1)

        self.client.force_authenticate(self.manager)


class DuePaymentApiTests(DueApiTestCase):
    """
    GUARANTEES:
    - POST without allocations settles oldest orders first
    - service errors map to 400 / 404 / 409
    - DELETE reverses what the payment applied
    """

    def test_record_payment_fifo(self):
        res = self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "50.00", "payment_method": "cash"},
            format="json",
        )

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["unapplied_amount"], "0.00")
        self.assertEqual(res.data["recorded_by_email"], "manager@example.com")
        self.assertEqual(
            [(a["order_number"], a["amount"]) for a in res.data["allocations"]],
            [("1", "40.00"), ("2", "10.00")],
        )

        self.new.refresh_from_db()
        self.assertEqual(self.new.payment_status, Order.PAYMENT_PARTIAL)

    def test_record_payment_explicit_allocations(self):
        res = self.client.post(
            f"{BASE}/payments/",
            {
                "customer_id": str(self.customer.id),
                "amount": "70.00",
                "payment_method": "transfer",
                "allocations": [{"order_id": str(self.new.id), "amount": "60.00"}],
            },
            format="json",
        )

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["unapplied_amount"], "10.00")

        self.old.refresh_from_db()
        self.new.refresh_from_db()
        self.assertEqual(self.old.payment_status, Order.PAYMENT_DUE)
        self.assertEqual(self.new.payment_status, Order.PAYMENT_PAID)

    def test_empty_allocations_keep_everything_as_credit(self):
        res = self.client.post(
            f"{BASE}/payments/",
            {
                "customer_id": str(self.customer.id),
                "amount": "25.00",
                "payment_method": "cash",
                "allocations": [],
            },
            format="json",
        )

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["allocations"], [])
        self.assertEqual(res.data["unapplied_amount"], "25.00")

    def test_over_allocation_is_conflict(self):
        res = self.client.post(
            f"{BASE}/payments/",
            {
                "customer_id": str(self.customer.id),
                "amount": "100.00",
                "payment_method": "cash",
                "allocations": [{"order_id": str(self.old.id), "amount": "45.00"}],
            },
            format="json",
        )

        self.assertEqual(res.status_code, 409)
        self.assertFalse(DuePayment.objects.exists())

    def test_allocation_to_settled_order_is_conflict(self):
        settled = Order.objects.create(
            order_number="9",
            customer=self.customer,
            subtotal="50.00",
            total="50.00",
            payment_status=Order.PAYMENT_PAID,
            status=Order.STATUS_COMPLETED,
        )

        res = self.client.post(
            f"{BASE}/payments/",
            {
                "customer_id": str(self.customer.id),
                "amount": "10.00",
                "payment_method": "cash",
                "allocations": [{"order_id": str(settled.id), "amount": "10.00"}],
            },
            format="json",
        )

        self.assertEqual(res.status_code, 409)
        settled.refresh_from_db()
        self.assertEqual(settled.payment_status, Order.PAYMENT_PAID)
        self.assertFalse(DuePayment.objects.exists())

    def test_allocations_above_amount_is_bad_request(self):
        res = self.client.post(
            f"{BASE}/payments/",
            {
                "customer_id": str(self.customer.id),
                "amount": "10.00",
                "payment_method": "cash",
                "allocations": [{"order_id": str(self.old.id), "amount": "20.00"}],
            },
            format="json",
        )

        self.assertEqual(res.status_code, 400)

    def test_non_positive_amount_is_bad_request(self):
        res = self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "0.00", "payment_method": "cash"},
            format="json",
        )

        self.assertEqual(res.status_code, 400)

    def test_unknown_customer_is_not_found(self):
        res = self.client.post(
            f"{BASE}/payments/",
            {
                "customer_id": "00000000-0000-0000-0000-000000000001",
                "amount": "10.00",
                "payment_method": "cash",
            },
            format="json",
        )

        self.assertEqual(res.status_code, 404)

    def test_list_filters_by_customer(self):
        other = Customer.objects.create(name="Other")
        make_due_order(other, 3, "10.00")
        self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "5.00", "payment_method": "cash"},
            format="json",
        )
        self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(other.id), "amount": "5.00", "payment_method": "cash"},
            format="json",
        )

        res = self.client.get(f"{BASE}/payments/", {"customer_id": str(other.id)})

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["count"], 1)
        self.assertEqual(res.data["results"][0]["customer"], other.id)

    def test_patch_updates_metadata_only(self):
        created = self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "40.00", "payment_method": "cash"},
            format="json",
        )

        res = self.client.patch(
            f"{BASE}/payments/{created.data['id']}/",
            {"reference": "RCPT-7", "note": "Counted twice", "amount": "1.00"},
            format="json",
        )

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["reference"], "RCPT-7")
        self.assertEqual(res.data["amount"], "40.00")

    def test_delete_reverses_allocations(self):
        created = self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "40.00", "payment_method": "cash"},
            format="json",
        )

        res = self.client.delete(f"{BASE}/payments/{created.data['id']}/")

        self.assertEqual(res.status_code, 204)
        self.old.refresh_from_db()
        self.assertEqual(self.old.payment_status, Order.PAYMENT_DUE)
        self.assertEqual(str(self.old.paid_amount), "0.00")

    def test_delete_unknown_payment(self):
        res = self.client.delete(f"{BASE}/payments/00000000-0000-0000-0000-000000000002/")

        self.assertEqual(res.status_code, 404)

    def test_allocations_endpoint(self):
        created = self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "50.00", "payment_method": "cash"},
            format="json",
        )

        res = self.client.get(f"{BASE}/payments/{created.data['id']}/allocations/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(res.data), 2)

    def test_bulk_delete_reports_missing_ids(self):
        created = self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "10.00", "payment_method": "cash"},
            format="json",
        )
        missing = "00000000-0000-0000-0000-000000000003"

        res = self.client.post(
            f"{BASE}/payments/bulk-delete/",
            {"ids": [created.data["id"], missing]},
            format="json",
        )

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["deleted_count"], 1)
        self.assertEqual([e["id"] for e in res.data["errors"]], [missing])

    def test_fifo_preview_writes_nothing(self):
        res = self.client.post(
            f"{BASE}/payments/fifo-preview/",
            {"customer_id": str(self.customer.id), "amount": "120.00"},
            format="json",
        )

        self.assertEqual(res.status_code, 200)
        self.assertEqual(
            [line["amount"] for line in res.data["allocations"]], ["40.00", "60.00"]
        )
        self.assertEqual(res.data["unapplied_amount"], "20.00")
        self.assertFalse(DuePayment.objects.exists())

        self.old.refresh_from_db()
        self.assertEqual(self.old.payment_status, Order.PAYMENT_DUE)


class DueLedgerApiTests(DueApiTestCase):
    def test_customer_summary(self):
        self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "40.00", "payment_method": "cash"},
            format="json",
        )

        res = self.client.get(f"{BASE}/customers/{self.customer.id}/summary/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["total_due"], "100.00")
        self.assertEqual(res.data["total_paid"], "40.00")
        self.assertEqual(res.data["balance"], "60.00")
        self.assertEqual(res.data["orders_count"], 1)

    def test_customer_summary_not_found(self):
        res = self.client.get(
            f"{BASE}/customers/00000000-0000-0000-0000-000000000004/summary/"
        )

        self.assertEqual(res.status_code, 404)

    def test_customers_summary_page(self):
        Customer.objects.create(name="Zero Zed")

        res = self.client.get(f"{BASE}/customers-summary/", {"status": "pending"})

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["total"], 1)
        self.assertEqual(res.data["summaries"][0]["customer"]["name"], "Yaw")
        self.assertEqual(res.data["summaries"][0]["balance"], "100.00")

    def test_customers_summary_rejects_unknown_status(self):
        res = self.client.get(f"{BASE}/customers-summary/", {"status": "late"})

        self.assertEqual(res.status_code, 400)

    def test_customers_summary_stats(self):
        res = self.client.get(f"{BASE}/customers-summary/stats/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["total_customers"], 1)
        self.assertEqual(res.data["pending_dues"], 1)
        self.assertEqual(res.data["total_outstanding"], "100.00")

    def test_transactions(self):
        res = self.client.get(f"{BASE}/customers/{self.customer.id}/transactions/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["total"], 2)
        self.assertEqual(
            [line["order_number"] for line in res.data["transactions"]], ["2", "1"]
        )


class DueEntryApiTests(DueApiTestCase):
    def test_create_due_entry(self):
        res = self.client.post(
            f"{BASE}/due-entries/",
            {
                "customer_id": str(self.customer.id),
                "amount": "35.50",
                "description": "Carried over from notebook",
            },
            format="json",
        )

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["order_source"], Order.SOURCE_DUE_MANAGEMENT)
        self.assertEqual(res.data["payment_status"], Order.PAYMENT_DUE)
        self.assertEqual(res.data["total"], "35.50")
        self.assertEqual(res.data["notes"], "Carried over from notebook")

    def test_due_entry_unknown_customer(self):
        res = self.client.post(
            f"{BASE}/due-entries/",
            {"customer_id": "00000000-0000-0000-0000-000000000005", "amount": "5.00"},
            format="json",
        )

        self.assertEqual(res.status_code, 404)


class DuePermissionTests(DueApiTestCase):
    def test_anonymous_is_rejected(self):
        self.client.force_authenticate(None)

        res = self.client.get(f"{BASE}/customers-summary/")

        self.assertEqual(res.status_code, 401)

    def test_waiter_cannot_view_ledger(self):
        self.client.force_authenticate(self.waiter)

        res = self.client.get(f"{BASE}/customers-summary/")

        self.assertEqual(res.status_code, 403)

    def test_cashier_can_record_but_not_delete(self):
        self.client.force_authenticate(self.cashier)

        created = self.client.post(
            f"{BASE}/payments/",
            {"customer_id": str(self.customer.id), "amount": "10.00", "payment_method": "cash"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)

        res = self.client.delete(f"{BASE}/payments/{created.data['id']}/")
        self.assertEqual(res.status_code, 403)
        self.assertTrue(DuePayment.objects.filter(id=created.data["id"]).exists())
