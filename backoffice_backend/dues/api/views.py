# dues/api/views.py

"""
======================================================
PATH: dues/api/views.py
======================================================
DUE LEDGER API

Payments:
- GET/POST  payments/                      list / record (FIFO when no allocations)
- GET/PATCH/DELETE payments/<id>/          read / correct / delete
- GET       payments/<id>/allocations/
- POST      payments/bulk-delete/
- POST      payments/fifo-preview/         what FIFO would do, nothing written

Ledger:
- GET customers-summary/                   filtered + paginated rollups
- GET customers-summary/stats/
- GET customers/<id>/summary/
- GET customers/<id>/transactions/

Entries:
- POST due-entries/                        manual due (order from due-management)

Security:
- IsAuthenticated + capability per HTTP method (due.view/create/edit/delete)

Errors (service -> HTTP):
- LedgerValidationError / OrderFinancialsError -> 400
- LedgerNotFoundError / CustomerNotFoundError  -> 404
- LedgerConsistencyError                       -> 409
======================================================
"""

from __future__ import annotations

import logging
from datetime import datetime, time

from django.conf import settings
from django.shortcuts import get_object_or_404
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from branches.models import Branch
from customers.services.exceptions import CustomerNotFoundError
from dues.api.serializers import (
    BulkDeleteInputSerializer,
    BulkDeleteResultSerializer,
    CustomerDueFiguresSerializer,
    CustomerDueStatsSerializer,
    CustomerDueSummaryPageSerializer,
    DueEntryCreateSerializer,
    DueOrderSerializer,
    DuePaymentAllocationSerializer,
    DuePaymentCreateSerializer,
    DuePaymentSerializer,
    DuePaymentUpdateSerializer,
    FifoPreviewInputSerializer,
    FifoPreviewResultSerializer,
    SummaryQuerySerializer,
    TransactionPageSerializer,
    TransactionQuerySerializer,
)
from dues.models import DuePayment
from dues.services.allocation import (
    build_fifo_allocations,
    bulk_delete_due_payments,
    delete_due_payment,
    get_due_payment,
    list_allocations,
    list_due_payments,
    record_payment,
    update_due_payment,
)
from dues.services.exceptions import (
    LedgerConsistencyError,
    LedgerError,
    LedgerNotFoundError,
    LedgerValidationError,
)
from dues.services.ledger import (
    get_all_customers_due_summary,
    get_customer_due_summary,
    get_customer_transactions,
    get_customers_due_summary_stats,
)
from orders.services.exceptions import OrderFinancialsError
from orders.services.money import ZERO
from orders.services.order_entry import create_due_entry
from permissions.roles import (
    CAP_DUE_CREATE,
    CAP_DUE_DELETE,
    CAP_DUE_EDIT,
    CAP_DUE_VIEW,
    HasMethodCapability,
)


logger = logging.getLogger("dues")


# ==========================================================
# HELPERS
# ==========================================================

def ledger_error_response(exc: Exception) -> Response:
    if isinstance(exc, (LedgerNotFoundError, CustomerNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, LedgerConsistencyError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({"detail": str(exc)}, status=code)


def _day_start(d):
    if d is None:
        return None
    return timezone.make_aware(datetime.combine(d, time.min))


def _day_end(d):
    if d is None:
        return None
    return timezone.make_aware(datetime.combine(d, time.max))


def _branch_or_none(branch_id):
    if not branch_id:
        return None
    return get_object_or_404(Branch, id=branch_id)


def _page_limit(limit):
    cap = getattr(settings, "DUE_SUMMARY_MAX_PAGE_SIZE", 100)
    if limit is None:
        return cap
    return min(int(limit), cap)


class DueBaseView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasMethodCapability]


# ==========================================================
# PAYMENTS
# ==========================================================

class DuePaymentListCreateView(DueBaseView):
    serializer_class = DuePaymentSerializer
    method_capabilities = {"GET": CAP_DUE_VIEW, "POST": CAP_DUE_CREATE}

    def get_queryset(self):
        params = self.request.query_params
        return list_due_payments(
            customer_id=(params.get("customer_id") or "").strip() or None,
            branch_id=(params.get("branch_id") or "").strip() or None,
        )

    @extend_schema(tags=["dues"], responses=DuePaymentSerializer(many=True))
    def get(self, request):
        try:
            qs = self.get_queryset()
        except LedgerError as exc:
            return ledger_error_response(exc)

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(DuePaymentSerializer(page, many=True).data)
        return Response(DuePaymentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["dues"],
        request=DuePaymentCreateSerializer,
        responses={201: DuePaymentSerializer},
    )
    def post(self, request):
        s = DuePaymentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        allocations = data.get("allocations")
        if allocations is not None:
            allocations = [dict(a) for a in allocations]

        try:
            payment = record_payment(
                customer_id=data["customer_id"],
                amount=data["amount"],
                payment_method=data["payment_method"],
                payment_date=data.get("payment_date"),
                allocations=allocations,
                reference=data.get("reference", ""),
                note=data.get("note", ""),
                payment_slips=data.get("payment_slips") or [],
                branch=_branch_or_none(data.get("branch_id")),
                recorded_by=request.user,
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        payment = DuePayment.objects.prefetch_related("allocations__order").get(id=payment.id)
        return Response(DuePaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class DuePaymentDetailView(DueBaseView):
    serializer_class = DuePaymentSerializer
    method_capabilities = {
        "GET": CAP_DUE_VIEW,
        "PATCH": CAP_DUE_EDIT,
        "DELETE": CAP_DUE_DELETE,
    }

    @extend_schema(tags=["dues"], responses=DuePaymentSerializer)
    def get(self, request, payment_id):
        try:
            payment = get_due_payment(payment_id=payment_id)
        except LedgerError as exc:
            return ledger_error_response(exc)
        return Response(DuePaymentSerializer(payment).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["dues"],
        request=DuePaymentUpdateSerializer,
        responses=DuePaymentSerializer,
    )
    def patch(self, request, payment_id):
        s = DuePaymentUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)

        try:
            payment = update_due_payment(payment_id=payment_id, **s.validated_data)
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(DuePaymentSerializer(payment).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["dues"], responses={204: None})
    def delete(self, request, payment_id):
        try:
            delete_due_payment(payment_id=payment_id)
        except LedgerError as exc:
            return ledger_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DuePaymentAllocationsView(DueBaseView):
    serializer_class = DuePaymentAllocationSerializer
    method_capabilities = {"GET": CAP_DUE_VIEW}

    @extend_schema(tags=["dues"], responses=DuePaymentAllocationSerializer(many=True))
    def get(self, request, payment_id):
        try:
            get_due_payment(payment_id=payment_id)
            qs = list_allocations(payment_id=payment_id)
        except LedgerError as exc:
            return ledger_error_response(exc)
        return Response(
            DuePaymentAllocationSerializer(qs, many=True).data, status=status.HTTP_200_OK
        )


class DuePaymentBulkDeleteView(DueBaseView):
    serializer_class = BulkDeleteInputSerializer
    method_capabilities = {"POST": CAP_DUE_DELETE}

    @extend_schema(
        tags=["dues"],
        request=BulkDeleteInputSerializer,
        responses=BulkDeleteResultSerializer,
    )
    def post(self, request):
        s = BulkDeleteInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        result = bulk_delete_due_payments(ids=s.validated_data["ids"])
        return Response(BulkDeleteResultSerializer(result).data, status=status.HTTP_200_OK)


class FifoPreviewView(DueBaseView):
    serializer_class = FifoPreviewInputSerializer
    method_capabilities = {"POST": CAP_DUE_VIEW}

    @extend_schema(
        tags=["dues"],
        request=FifoPreviewInputSerializer,
        responses=FifoPreviewResultSerializer,
    )
    def post(self, request):
        s = FifoPreviewInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            lines = build_fifo_allocations(
                customer_id=data["customer_id"],
                amount=data["amount"],
                branch_id=data.get("branch_id"),
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        applied = sum((line["amount"] for line in lines), ZERO)
        result = {"allocations": lines, "unapplied_amount": data["amount"] - applied}
        return Response(FifoPreviewResultSerializer(result).data, status=status.HTTP_200_OK)


# ==========================================================
# LEDGER
# ==========================================================

class CustomersDueSummaryView(DueBaseView):
    serializer_class = CustomerDueSummaryPageSerializer
    method_capabilities = {"GET": CAP_DUE_VIEW}

    @extend_schema(
        tags=["dues"],
        parameters=[SummaryQuerySerializer],
        responses=CustomerDueSummaryPageSerializer,
    )
    def get(self, request):
        q = SummaryQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        p = q.validated_data

        try:
            result = get_all_customers_due_summary(
                branch_id=p.get("branch_id"),
                date_from=_day_start(p.get("date_from")),
                date_to=_day_end(p.get("date_to")),
                search=p.get("search"),
                status_filter=p.get("status"),
                min_amount=p.get("min_amount"),
                max_amount=p.get("max_amount"),
                limit=_page_limit(p.get("limit")),
                offset=p.get("offset", 0),
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(
            CustomerDueSummaryPageSerializer(result).data, status=status.HTTP_200_OK
        )


class CustomersDueSummaryStatsView(DueBaseView):
    serializer_class = CustomerDueStatsSerializer
    method_capabilities = {"GET": CAP_DUE_VIEW}

    @extend_schema(
        tags=["dues"],
        parameters=[SummaryQuerySerializer],
        responses=CustomerDueStatsSerializer,
    )
    def get(self, request):
        q = SummaryQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        p = q.validated_data

        try:
            result = get_customers_due_summary_stats(
                branch_id=p.get("branch_id"),
                date_from=_day_start(p.get("date_from")),
                date_to=_day_end(p.get("date_to")),
                search=p.get("search"),
                status_filter=p.get("status"),
                min_amount=p.get("min_amount"),
                max_amount=p.get("max_amount"),
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(CustomerDueStatsSerializer(result).data, status=status.HTTP_200_OK)


class CustomerDueSummaryView(DueBaseView):
    serializer_class = CustomerDueFiguresSerializer
    method_capabilities = {"GET": CAP_DUE_VIEW}

    @extend_schema(tags=["dues"], responses=CustomerDueFiguresSerializer)
    def get(self, request, customer_id):
        try:
            summary = get_customer_due_summary(customer_id)
        except LedgerError as exc:
            return ledger_error_response(exc)
        return Response(CustomerDueFiguresSerializer(summary).data, status=status.HTTP_200_OK)


class CustomerTransactionsView(DueBaseView):
    serializer_class = TransactionPageSerializer
    method_capabilities = {"GET": CAP_DUE_VIEW}

    @extend_schema(
        tags=["dues"],
        parameters=[TransactionQuerySerializer],
        responses=TransactionPageSerializer,
    )
    def get(self, request, customer_id):
        q = TransactionQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        p = q.validated_data

        try:
            result = get_customer_transactions(
                customer_id=customer_id,
                branch_id=p.get("branch_id"),
                search=p.get("search"),
                date_from=_day_start(p.get("date_from")),
                date_to=_day_end(p.get("date_to")),
                limit=min(p.get("limit", 50), _page_limit(None)),
                offset=p.get("offset", 0),
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(TransactionPageSerializer(result).data, status=status.HTTP_200_OK)


# ==========================================================
# DUE ENTRIES
# ==========================================================

class DueEntryCreateView(DueBaseView):
    serializer_class = DueEntryCreateSerializer
    method_capabilities = {"POST": CAP_DUE_CREATE}

    @extend_schema(
        tags=["dues"],
        request=DueEntryCreateSerializer,
        responses={201: DueOrderSerializer},
    )
    def post(self, request):
        s = DueEntryCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            order = create_due_entry(
                customer_id=data["customer_id"],
                amount=data["amount"],
                description=data.get("description", ""),
                branch=_branch_or_none(data.get("branch_id")),
                created_at=data.get("created_at"),
                created_by=request.user,
            )
        except (CustomerNotFoundError, OrderFinancialsError, LedgerValidationError) as exc:
            return ledger_error_response(exc)

        return Response(DueOrderSerializer(order).data, status=status.HTTP_201_CREATED)
