# dues/services/ledger.py

"""
CUSTOMER LEDGER AGGREGATOR (READ-ONLY)

Per-customer rollup, derived on every read:
- total_due:    sum(total) over ALL orders (lifetime volume)
- total_paid:   sum(paid_amount) over all orders
- balance:      sum(total - paid_amount) over due/partial orders
- credit:       sum(unapplied_amount) over payments
- orders_count: number of due/partial orders

RULES:
- READ-ONLY: no writes, no locks
- Bulk views use grouped aggregates (one orders query + one payments query),
  never a scan per customer
- Figures are lifetime, identical to the single-customer summary; branch and
  date scope only decide which customers are listed
- Customers referenced by orders or payments but missing a Customer row show
  up as placeholders built from their earliest order (or payment)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db.models import (
    Case,
    Count,
    DecimalField,
    Exists,
    F,
    OuterRef,
    Q,
    Sum,
    Value,
    When,
)
from django.db.models.functions import Coalesce

from customers.models import Customer
from dues.models import DuePayment, DuePaymentAllocation
from dues.services.exceptions import LedgerNotFoundError, LedgerValidationError
from orders.models import Order
from orders.services.money import ZERO, money


MONEY_FIELD = DecimalField(max_digits=14, decimal_places=2)
ZERO_VALUE = Value(ZERO, output_field=MONEY_FIELD)

STATUS_PENDING = "pending"
STATUS_CLEARED = "cleared"
STATUS_NO_RECORD = "no-record"
STATUS_FILTERS = {STATUS_PENDING, STATUS_CLEARED, STATUS_NO_RECORD}

PLACEHOLDER_NAME = "Unknown Customer"


def _q2(v) -> Decimal:
    return money(v)


def _uuid(v, *, field: str = "customer_id") -> uuid.UUID:
    if isinstance(v, uuid.UUID):
        return v
    try:
        return uuid.UUID(str(v))
    except (TypeError, ValueError, AttributeError) as exc:
        raise LedgerValidationError(f"{field} is not a valid id") from exc


# ============================================================
# SCOPES
# ============================================================

def _branch_q(branch_id) -> Q:
    # Rows without a branch are shared by every branch.
    return Q(branch_id=branch_id) | Q(branch__isnull=True)


def _order_scope(*, branch_id=None, date_from=None, date_to=None):
    qs = Order.objects.filter(customer_id__isnull=False)
    if branch_id:
        qs = qs.filter(_branch_q(branch_id))
    if date_from:
        qs = qs.filter(created_at__gte=date_from)
    if date_to:
        qs = qs.filter(created_at__lte=date_to)
    return qs


def _payment_scope(*, branch_id=None, date_from=None, date_to=None):
    qs = DuePayment.objects.all()
    if branch_id:
        qs = qs.filter(_branch_q(branch_id))
    if date_from:
        qs = qs.filter(payment_date__gte=date_from)
    if date_to:
        qs = qs.filter(payment_date__lte=date_to)
    return qs


# ============================================================
# AGGREGATES
# ============================================================

def _order_aggregates():
    open_q = Q(payment_status__in=Order.OPEN_PAYMENT_STATUSES)
    return {
        "total_due": Coalesce(Sum("total"), ZERO_VALUE, output_field=MONEY_FIELD),
        "total_paid": Coalesce(Sum("paid_amount"), ZERO_VALUE, output_field=MONEY_FIELD),
        "balance": Coalesce(
            Sum(
                Case(
                    When(open_q, then=F("total") - F("paid_amount")),
                    default=ZERO_VALUE,
                    output_field=MONEY_FIELD,
                )
            ),
            ZERO_VALUE,
            output_field=MONEY_FIELD,
        ),
        "orders_count": Count("id", filter=open_q),
        "all_orders_count": Count("id"),
    }


def _payment_aggregates():
    return {
        "credit": Coalesce(Sum("unapplied_amount"), ZERO_VALUE, output_field=MONEY_FIELD),
        "payments_count": Count("id"),
    }


def _empty_figures() -> dict:
    return {
        "total_due": ZERO,
        "total_paid": ZERO,
        "balance": ZERO,
        "credit": ZERO,
        "orders_count": 0,
        "all_orders_count": 0,
        "payments_count": 0,
    }


def _figures_by_customer() -> dict:
    """
    Lifetime {customer_id: figures} for every customer with orders or payments.
    Two grouped queries in total.
    """
    figures: dict = {}

    order_rows = (
        _order_scope()
        .values("customer_id")
        .annotate(**_order_aggregates())
        .order_by()
    )
    for row in order_rows:
        f = figures.setdefault(row["customer_id"], _empty_figures())
        f["total_due"] = _q2(row["total_due"])
        f["total_paid"] = _q2(row["total_paid"])
        f["balance"] = _q2(row["balance"])
        f["orders_count"] = row["orders_count"]
        f["all_orders_count"] = row["all_orders_count"]

    payment_rows = (
        _payment_scope()
        .values("customer_id")
        .annotate(**_payment_aggregates())
        .order_by()
    )
    for row in payment_rows:
        f = figures.setdefault(row["customer_id"], _empty_figures())
        f["credit"] = _q2(row["credit"])
        f["payments_count"] = row["payments_count"]

    return figures


def _public_figures(f: dict) -> dict:
    return {
        "total_due": f["total_due"],
        "total_paid": f["total_paid"],
        "balance": f["balance"],
        "credit": f["credit"],
        "orders_count": f["orders_count"],
    }


# ============================================================
# SINGLE CUSTOMER
# ============================================================

def get_customer_due_summary(customer_id) -> dict:
    """
    Lifetime rollup for one customer (no branch/date scope).
    Placeholder customers (orders only, no row) are valid.
    """
    customer_id = _uuid(customer_id)

    orders = Order.objects.filter(customer_id=customer_id)
    payments = DuePayment.objects.filter(customer_id=customer_id)

    if not (
        Customer.objects.filter(id=customer_id).exists()
        or orders.exists()
        or payments.exists()
    ):
        raise LedgerNotFoundError("Customer not found")

    o = orders.aggregate(**_order_aggregates())
    p = payments.aggregate(**_payment_aggregates())

    return {
        "total_due": _q2(o["total_due"]),
        "total_paid": _q2(o["total_paid"]),
        "balance": _q2(o["balance"]),
        "credit": _q2(p["credit"]),
        "orders_count": o["orders_count"],
    }


# ============================================================
# ALL CUSTOMERS
# ============================================================

def _customer_payload(c: Customer) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "phone": c.phone or None,
        "email": c.email or None,
        "branch_id": c.branch_id,
        "notes": c.notes or None,
        "created_at": c.created_at,
        "is_placeholder": False,
    }


def _placeholder_payloads(*, customer_ids, branch_id=None, date_from=None, date_to=None) -> list[dict]:
    """
    Customers that exist only as ids on orders or payments. Name/phone/branch
    come from the earliest order in scope; ids seen only on payments fall back
    to the earliest payment.
    """
    if not customer_ids:
        return []

    rows = (
        _order_scope(branch_id=branch_id, date_from=date_from, date_to=date_to)
        .filter(customer_id__in=customer_ids)
        .order_by("customer_id", "created_at")
        .values("customer_id", "customer_name", "customer_phone", "branch_id", "created_at")
    )

    seen = {}
    for row in rows:
        cid = row["customer_id"]
        if cid in seen:
            continue
        seen[cid] = {
            "id": cid,
            "name": (row["customer_name"] or "").strip() or PLACEHOLDER_NAME,
            "phone": row["customer_phone"] or None,
            "email": None,
            "branch_id": row["branch_id"],
            "notes": None,
            "created_at": row["created_at"],
            "is_placeholder": True,
        }

    payment_rows = (
        _payment_scope(branch_id=branch_id, date_from=date_from, date_to=date_to)
        .filter(customer_id__in=set(customer_ids) - set(seen))
        .order_by("customer_id", "payment_date")
        .values("customer_id", "branch_id", "payment_date")
    )
    for row in payment_rows:
        cid = row["customer_id"]
        if cid in seen:
            continue
        seen[cid] = {
            "id": cid,
            "name": PLACEHOLDER_NAME,
            "phone": None,
            "email": None,
            "branch_id": row["branch_id"],
            "notes": None,
            "created_at": row["payment_date"],
            "is_placeholder": True,
        }
    return list(seen.values())


def _invoice_number_from_search(search: str) -> str | None:
    """
    "42" or "INV-42" (prefix case-insensitive) -> "42". Anything else -> None.
    """
    prefix = (getattr(settings, "INVOICE_PREFIX", "INV-") or "").strip()
    s = search.strip()

    if prefix and s.lower().startswith(prefix.lower()):
        number = s[len(prefix):].strip()
        return number or None
    if s.isdigit():
        return s
    return None


def _text_match(payload: dict, needle: str) -> bool:
    needle = needle.lower()
    for key in ("name", "phone", "email"):
        value = payload.get(key)
        if value and needle in str(value).lower():
            return True
    return False


def _status_match(f: dict, status_filter: str) -> bool:
    has_records = f["all_orders_count"] > 0 or f["payments_count"] > 0

    if status_filter == STATUS_PENDING:
        return f["balance"] > ZERO
    if status_filter == STATUS_CLEARED:
        return f["balance"] == ZERO and has_records
    if status_filter == STATUS_NO_RECORD:
        return f["balance"] == ZERO and not has_records
    return True


def _filtered_summaries(
    *,
    branch_id=None,
    date_from=None,
    date_to=None,
    search=None,
    status_filter=None,
    min_amount=None,
    max_amount=None,
) -> list[dict]:
    if status_filter and status_filter != "all" and status_filter not in STATUS_FILTERS:
        raise LedgerValidationError(f"Unknown status filter: {status_filter}")

    # Figures are always lifetime; branch/date scope only picks who is listed.
    figures = _figures_by_customer()

    # 1) branch scope
    customers_qs = Customer.objects.all()
    if branch_id:
        customers_qs = customers_qs.filter(_branch_q(branch_id))
    customers = [_customer_payload(c) for c in customers_qs.order_by("name", "created_at")]

    # 2) date range (placeholders come from orders/payments in scope)
    scoped_ids = set(
        _order_scope(branch_id=branch_id, date_from=date_from, date_to=date_to)
        .values_list("customer_id", flat=True)
        .distinct()
    ) | set(
        _payment_scope(branch_id=branch_id, date_from=date_from, date_to=date_to)
        .values_list("customer_id", flat=True)
        .distinct()
    )
    known_ids = set(Customer.objects.filter(id__in=scoped_ids).values_list("id", flat=True))
    placeholders = _placeholder_payloads(
        customer_ids=scoped_ids - known_ids,
        branch_id=branch_id,
        date_from=date_from,
        date_to=date_to,
    )

    rows = [
        (payload, figures.get(payload["id"]) or _empty_figures())
        for payload in customers + sorted(placeholders, key=lambda p: p["name"].lower())
    ]

    # 3) search
    search = (search or "").strip()
    if search:
        invoice_number = _invoice_number_from_search(search)
        if invoice_number is not None:
            matching = Order.objects.filter(order_number=invoice_number)
            if branch_id:
                matching = matching.filter(_branch_q(branch_id))
            ids = set(matching.values_list("customer_id", flat=True))
            rows = [r for r in rows if r[0]["id"] in ids]
        else:
            rows = [r for r in rows if _text_match(r[0], search)]

    # 4) status
    if status_filter and status_filter != "all":
        rows = [r for r in rows if _status_match(r[1], status_filter)]

    # 5) balance range
    if min_amount is not None:
        lo = money(min_amount)
        rows = [r for r in rows if r[1]["balance"] >= lo]
    if max_amount is not None:
        hi = money(max_amount)
        rows = [r for r in rows if r[1]["balance"] <= hi]

    return [{"customer": payload, **_public_figures(f)} for payload, f in rows]


def get_all_customers_due_summary(
    *,
    branch_id=None,
    date_from=None,
    date_to=None,
    search=None,
    status_filter=None,
    min_amount=None,
    max_amount=None,
    limit=None,
    offset=None,
) -> dict:
    """
    Filtered, paginated summaries. Filter order: branch, date range, search,
    status, balance min/max, then pagination. `total` counts before paging.
    """
    summaries = _filtered_summaries(
        branch_id=branch_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        status_filter=status_filter,
        min_amount=min_amount,
        max_amount=max_amount,
    )

    total = len(summaries)

    start = max(int(offset or 0), 0)
    if limit is not None:
        summaries = summaries[start : start + max(int(limit), 0)]
    elif start:
        summaries = summaries[start:]

    return {"summaries": summaries, "total": total}


def get_customers_due_summary_stats(
    *,
    branch_id=None,
    date_from=None,
    date_to=None,
    search=None,
    status_filter=None,
    min_amount=None,
    max_amount=None,
) -> dict:
    summaries = _filtered_summaries(
        branch_id=branch_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        status_filter=status_filter,
        min_amount=min_amount,
        max_amount=max_amount,
    )

    return {
        "total_customers": len(summaries),
        "pending_dues": sum(1 for s in summaries if s["balance"] > ZERO),
        "total_outstanding": _q2(sum((s["balance"] for s in summaries), ZERO)),
        "total_collected": _q2(sum((s["total_paid"] for s in summaries), ZERO)),
    }


# ============================================================
# STATEMENT
# ============================================================

def get_customer_transactions(
    *,
    customer_id,
    branch_id=None,
    search=None,
    date_from=None,
    date_to=None,
    limit=50,
    offset=0,
) -> dict:
    """
    Statement lines for one customer, newest first:
    - "due": due-related orders (due-management entries, open orders, or
      orders that received an allocation)
    - "payment": due payments
    """
    customer_id = _uuid(customer_id)

    orders = Order.objects.filter(customer_id=customer_id).annotate(
        has_allocations=Exists(
            DuePaymentAllocation.objects.filter(order_id=OuterRef("pk"))
        )
    ).filter(
        Q(order_source=Order.SOURCE_DUE_MANAGEMENT)
        | Q(payment_status__in=Order.OPEN_PAYMENT_STATUSES)
        | Q(has_allocations=True)
    )
    payments = DuePayment.objects.filter(customer_id=customer_id)

    if branch_id:
        orders = orders.filter(_branch_q(branch_id))
        payments = payments.filter(_branch_q(branch_id))
    if date_from:
        orders = orders.filter(created_at__gte=date_from)
        payments = payments.filter(payment_date__gte=date_from)
    if date_to:
        orders = orders.filter(created_at__lte=date_to)
        payments = payments.filter(payment_date__lte=date_to)

    lines = []
    for o in orders:
        lines.append(
            {
                "id": o.id,
                "type": "due",
                "date": o.created_at,
                "amount": _q2(o.total),
                "description": (
                    "Due Entry"
                    if o.order_source == Order.SOURCE_DUE_MANAGEMENT
                    else f"Order {o.order_number}"
                ),
                "payment_method": None,
                "order_id": o.id,
                "order_number": o.order_number,
                "payment_status": o.payment_status,
                "paid_amount": _q2(o.paid_amount),
                "payment_id": None,
                "unapplied_amount": None,
            }
        )
    for p in payments:
        lines.append(
            {
                "id": p.id,
                "type": "payment",
                "date": p.payment_date,
                "amount": _q2(p.amount),
                "description": (p.note or "").strip() or "Payment",
                "payment_method": p.payment_method,
                "order_id": None,
                "order_number": None,
                "payment_status": None,
                "paid_amount": None,
                "payment_id": p.id,
                "unapplied_amount": _q2(p.unapplied_amount),
            }
        )

    search = (search or "").strip().lower()
    if search:
        lines = [
            line
            for line in lines
            if search in line["description"].lower()
            or (line["payment_method"] and search in line["payment_method"].lower())
            or (line["order_number"] and search in line["order_number"].lower())
        ]

    lines.sort(key=lambda line: line["date"], reverse=True)

    total = len(lines)
    start = max(int(offset or 0), 0)
    if limit:
        lines = lines[start : start + int(limit)]
    elif start:
        lines = lines[start:]

    return {"transactions": lines, "total": total}
