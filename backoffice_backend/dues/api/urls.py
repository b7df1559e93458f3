# dues/api/urls.py

from django.urls import path

from dues.api.views import (
    CustomerDueSummaryView,
    CustomersDueSummaryStatsView,
    CustomersDueSummaryView,
    CustomerTransactionsView,
    DueEntryCreateView,
    DuePaymentAllocationsView,
    DuePaymentBulkDeleteView,
    DuePaymentDetailView,
    DuePaymentListCreateView,
    FifoPreviewView,
)

urlpatterns = [
    path("payments/", DuePaymentListCreateView.as_view(), name="due-payments"),
    path(
        "payments/bulk-delete/",
        DuePaymentBulkDeleteView.as_view(),
        name="due-payments-bulk-delete",
    ),
    path(
        "payments/fifo-preview/",
        FifoPreviewView.as_view(),
        name="due-payments-fifo-preview",
    ),
    path(
        "payments/<uuid:payment_id>/",
        DuePaymentDetailView.as_view(),
        name="due-payment-detail",
    ),
    path(
        "payments/<uuid:payment_id>/allocations/",
        DuePaymentAllocationsView.as_view(),
        name="due-payment-allocations",
    ),
    path(
        "customers-summary/",
        CustomersDueSummaryView.as_view(),
        name="due-customers-summary",
    ),
    path(
        "customers-summary/stats/",
        CustomersDueSummaryStatsView.as_view(),
        name="due-customers-summary-stats",
    ),
    path(
        "customers/<uuid:customer_id>/summary/",
        CustomerDueSummaryView.as_view(),
        name="due-customer-summary",
    ),
    path(
        "customers/<uuid:customer_id>/transactions/",
        CustomerTransactionsView.as_view(),
        name="due-customer-transactions",
    ),
    path("due-entries/", DueEntryCreateView.as_view(), name="due-entries"),
]
