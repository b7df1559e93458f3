# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import SAFE_METHODS, BasePermission


# =========================================================
# ROLE CONSTANTS (STAFF JOB ROLES)
# =========================================================
# They describe what the staff member does at a branch.
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_ACCOUNTANT = "accountant"
ROLE_CASHIER = "cashier"
ROLE_WAITER = "waiter"

STAFF_ROLES = {
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_ACCOUNTANT,
    ROLE_CASHIER,
    ROLE_WAITER,
}


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views should protect capabilities, not raw roles.
CAP_DUE_VIEW = "due.view"
CAP_DUE_CREATE = "due.create"
CAP_DUE_EDIT = "due.edit"
CAP_DUE_DELETE = "due.delete"

CAP_CUSTOMERS_VIEW = "customers.view"
CAP_CUSTOMERS_EDIT = "customers.edit"

CAP_ORDERS_CREATE = "orders.create"
CAP_ORDERS_EDIT = "orders.edit"

CAP_BRANCHES_MANAGE = "branches.manage"

ALL_CAPABILITIES = {
    CAP_DUE_VIEW,
    CAP_DUE_CREATE,
    CAP_DUE_EDIT,
    CAP_DUE_DELETE,
    CAP_CUSTOMERS_VIEW,
    CAP_CUSTOMERS_EDIT,
    CAP_ORDERS_CREATE,
    CAP_ORDERS_EDIT,
    CAP_BRANCHES_MANAGE,
}


# =========================================================
# ROLE → CAPABILITY MAP (DEFAULT)
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_MANAGER: {
        CAP_DUE_VIEW,
        CAP_DUE_CREATE,
        CAP_DUE_EDIT,
        CAP_DUE_DELETE,
        CAP_CUSTOMERS_VIEW,
        CAP_CUSTOMERS_EDIT,
        CAP_ORDERS_CREATE,
        CAP_ORDERS_EDIT,
    },
    ROLE_ACCOUNTANT: {
        CAP_DUE_VIEW,
        CAP_DUE_CREATE,
        CAP_DUE_EDIT,
        CAP_CUSTOMERS_VIEW,
    },
    ROLE_CASHIER: {
        CAP_DUE_VIEW,
        CAP_DUE_CREATE,
        CAP_CUSTOMERS_VIEW,
        CAP_ORDERS_CREATE,
        # deliberately NOT due.edit/due.delete
    },
    ROLE_WAITER: {
        CAP_ORDERS_CREATE,
    },
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def effective_capabilities_for(user) -> set[str]:
    if getattr(user, "is_superuser", False):
        return set(ALL_CAPABILITIES)
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


def user_has_capability(user, capability: str) -> bool:
    if not user or not user.is_authenticated:
        return False
    return capability in effective_capabilities_for(user)


# =========================================================
# Base Role Permission (Internal Use)
# =========================================================
class BaseRolePermission(BasePermission):
    """
    Base permission for role-based access control.

    Subclasses must define:
    - allowed_roles (set)
    """

    allowed_roles: set[str] = set()

    def has_permission(self, request, view):
        user = request.user

        if not user or not user.is_authenticated:
            return False

        user_role = get_user_role(user)
        if not user_role:
            return False

        return user_role in self.allowed_roles


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        view.required_capability = CAP_DUE_CREATE
    """

    def has_permission(self, request, view):
        required = getattr(view, "required_capability", None)
        if not required:
            # If not set, deny-by-default to avoid accidental open endpoints
            return False

        return user_has_capability(request.user, required)


class HasMethodCapability(BasePermission):
    """
    Capability per HTTP method.

    Usage:
        view.method_capabilities = {
            "GET": CAP_DUE_VIEW,
            "POST": CAP_DUE_CREATE,
        }

    HEAD/OPTIONS fall back to the GET capability.
    """

    def has_permission(self, request, view):
        mapping = getattr(view, "method_capabilities", None) or {}

        method = request.method.upper()
        required = mapping.get(method)
        if required is None and method in SAFE_METHODS:
            required = mapping.get("GET")

        if not required:
            return False

        return user_has_capability(request.user, required)


# =========================================================
# Role Permissions
# =========================================================
class IsAdmin(BaseRolePermission):
    allowed_roles = {ROLE_ADMIN}


class IsManagerOrAdmin(BaseRolePermission):
    allowed_roles = {ROLE_MANAGER, ROLE_ADMIN}


class IsStaff(BaseRolePermission):
    allowed_roles = STAFF_ROLES
