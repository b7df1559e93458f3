# customers/models.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from branches.models import Branch


class Customer(models.Model):
    """
    A named customer who can carry a due balance.

    Customers are created implicitly by order entry (find-or-create by name and
    phone) or explicitly from the back office.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=50, blank=True, default="")
    email = models.EmailField(blank=True, default="")

    # NULL = visible from every branch
    branch = models.ForeignKey(
        Branch,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customers",
    )

    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="customer_name_idx"),
            models.Index(fields=["phone"], name="customer_phone_idx"),
            models.Index(fields=["branch", "name"], name="customer_branch_name_idx"),
        ]

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        self.phone = (self.phone or "").strip()
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        if self.phone:
            return f"{self.name} ({self.phone})"
        return self.name
