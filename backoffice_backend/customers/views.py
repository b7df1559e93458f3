# customers/views.py

"""
CUSTOMER VIEWSET

- Read: customers.view
- Write: customers.edit
- Branch scope: ?branch_id=<uuid> returns that branch's customers plus the
  unassigned ones.
- Search: ?q= matches name, phone or email (case-insensitive).
"""

from django.db.models import Q
from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from customers.models import Customer
from customers.serializers import CustomerSerializer
from permissions.roles import (
    CAP_CUSTOMERS_EDIT,
    CAP_CUSTOMERS_VIEW,
    HasMethodCapability,
)


class CustomerViewSet(viewsets.ModelViewSet):
    serializer_class = CustomerSerializer
    permission_classes = [IsAuthenticated, HasMethodCapability]

    method_capabilities = {
        "GET": CAP_CUSTOMERS_VIEW,
        "POST": CAP_CUSTOMERS_EDIT,
        "PUT": CAP_CUSTOMERS_EDIT,
        "PATCH": CAP_CUSTOMERS_EDIT,
        "DELETE": CAP_CUSTOMERS_EDIT,
    }

    def get_queryset(self):
        qs = Customer.objects.select_related("branch").order_by("name")

        params = self.request.query_params

        branch_id = (params.get("branch_id") or "").strip()
        if branch_id:
            qs = qs.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))

        q = (params.get("q") or "").strip()
        if q:
            qs = qs.filter(
                Q(name__icontains=q) | Q(phone__icontains=q) | Q(email__icontains=q)
            )

        return qs
