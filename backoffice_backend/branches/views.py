# branches/views.py

"""
BRANCH VIEWSET

- Any staff member may list/retrieve branches (branch selector in the UI).
- Only branches.manage may create/update/delete.
"""

from rest_framework import viewsets
from rest_framework.permissions import SAFE_METHODS, IsAuthenticated

from branches.models import Branch
from branches.serializers import BranchSerializer
from permissions.roles import CAP_BRANCHES_MANAGE, HasCapability, IsStaff


class BranchViewSet(viewsets.ModelViewSet):
    queryset = Branch.objects.all().order_by("name")
    serializer_class = BranchSerializer
    required_capability = CAP_BRANCHES_MANAGE
    filterset_fields = ["is_active"]

    def get_permissions(self):
        if self.request.method in SAFE_METHODS:
            return [IsAuthenticated(), IsStaff()]
        return [IsAuthenticated(), HasCapability()]
