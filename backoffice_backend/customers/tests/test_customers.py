from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from branches.models import Branch
from customers.models import Customer
from customers.services import WALK_IN_CUSTOMER, find_or_create_customer

User = get_user_model()


class FindOrCreateCustomerTests(TestCase):
    """
    Customer resolution used by order entry.

    GUARANTEES:
    - Walk-in / blank names never create a customer
    - (name, phone) match wins over a name-only match
    - Name-only match backfills the phone
    """

    def setUp(self):
        self.branch = Branch.objects.create(name="Main")

    def test_walk_in_customer_returns_none(self):
        self.assertIsNone(find_or_create_customer(name=WALK_IN_CUSTOMER, phone="0800"))
        self.assertIsNone(find_or_create_customer(name="   "))
        self.assertEqual(Customer.objects.count(), 0)

    def test_creates_customer_when_no_match(self):
        c = find_or_create_customer(name="Ama", phone="0244", branch=self.branch)

        self.assertIsNotNone(c)
        self.assertEqual(c.name, "Ama")
        self.assertEqual(c.phone, "0244")
        self.assertEqual(c.branch_id, self.branch.id)

    def test_name_and_phone_match_is_preferred(self):
        Customer.objects.create(name="Kofi", phone="111")
        exact = Customer.objects.create(name="Kofi", phone="222")

        found = find_or_create_customer(name="Kofi", phone="222")

        self.assertEqual(found.id, exact.id)
        self.assertEqual(Customer.objects.filter(name="Kofi").count(), 2)

    def test_name_only_match_backfills_phone(self):
        existing = Customer.objects.create(name="Esi", phone="")

        found = find_or_create_customer(name=" Esi ", phone="0555")

        self.assertEqual(found.id, existing.id)
        existing.refresh_from_db()
        self.assertEqual(existing.phone, "0555")
        self.assertEqual(Customer.objects.count(), 1)

    def test_name_only_lookup_without_phone_reuses_customer(self):
        existing = Customer.objects.create(name="Yaw", phone="0201")

        found = find_or_create_customer(name="Yaw")

        self.assertEqual(found.id, existing.id)
        existing.refresh_from_db()
        self.assertEqual(existing.phone, "0201")


class CustomerApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.main = Branch.objects.create(name="Main")
        self.annex = Branch.objects.create(name="Annex")

        self.manager = User.objects.create_user(
            email="manager@example.com", password="pass", role="manager"
        )
        self.waiter = User.objects.create_user(
            email="waiter@example.com", password="pass", role="waiter"
        )

        Customer.objects.create(name="Main Customer", branch=self.main)
        Customer.objects.create(name="Annex Customer", branch=self.annex)
        Customer.objects.create(name="Shared Customer", email="shared@example.com")

    def test_branch_scope_includes_unassigned_customers(self):
        self.client.force_authenticate(self.manager)

        res = self.client.get("/api/customers/", {"branch_id": str(self.main.id)})

        self.assertEqual(res.status_code, 200)
        names = {row["name"] for row in res.data["results"]}
        self.assertEqual(names, {"Main Customer", "Shared Customer"})

    def test_search_matches_email(self):
        self.client.force_authenticate(self.manager)

        res = self.client.get("/api/customers/", {"q": "shared@"})

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["count"], 1)

    def test_waiter_cannot_view_customers(self):
        self.client.force_authenticate(self.waiter)

        res = self.client.get("/api/customers/")

        self.assertEqual(res.status_code, 403)

    def test_manager_can_create_customer(self):
        self.client.force_authenticate(self.manager)

        res = self.client.post(
            "/api/customers/",
            {"name": "New Person", "phone": "0300"},
            format="json",
        )

        self.assertEqual(res.status_code, 201)
        self.assertTrue(Customer.objects.filter(name="New Person").exists())
