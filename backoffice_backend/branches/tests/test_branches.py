from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework.test import APIClient

from branches.models import Branch

User = get_user_model()


class BranchModelTests(TestCase):
    def test_blank_codes_do_not_collide(self):
        Branch.objects.create(name="Main", code="")
        Branch.objects.create(name="Annex", code="")

        self.assertEqual(Branch.objects.count(), 2)

    def test_present_codes_are_unique(self):
        Branch.objects.create(name="Main", code="MN")

        with self.assertRaises(IntegrityError), transaction.atomic():
            Branch.objects.create(name="Annex", code="MN")


class BranchApiTests(TestCase):
    """
    GUARANTEES:
    - any staff member can list branches
    - only branches.manage can write
    """

    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(
            email="admin@example.com", password="pass", role="admin"
        )
        self.cashier = User.objects.create_user(
            email="cashier@example.com", password="pass", role="cashier"
        )
        Branch.objects.create(name="Main")

    def test_staff_can_list(self):
        self.client.force_authenticate(self.cashier)

        res = self.client.get("/api/branches/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual([b["name"] for b in res.data["results"]], ["Main"])

    def test_cashier_cannot_create(self):
        self.client.force_authenticate(self.cashier)

        res = self.client.post("/api/branches/", {"name": "Annex"}, format="json")

        self.assertEqual(res.status_code, 403)

    def test_admin_can_create(self):
        self.client.force_authenticate(self.admin)

        res = self.client.post("/api/branches/", {"name": "Annex", "code": "AX"}, format="json")

        self.assertEqual(res.status_code, 201)
        self.assertTrue(Branch.objects.filter(code="AX").exists())
