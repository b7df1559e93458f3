# orders/admin.py

from django.contrib import admin

from orders.models import Order, OrderCounter


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "customer_name",
        "branch",
        "order_source",
        "total",
        "paid_amount",
        "payment_status",
        "created_at",
    )
    list_filter = ("payment_status", "order_source", "status", "branch")
    search_fields = ("order_number", "customer_name", "customer_phone")
    ordering = ("-created_at",)

    # Ledger fields move only through the services
    readonly_fields = (
        "order_number",
        "total",
        "due_amount",
        "paid_amount",
        "payment_status",
        "created_at",
        "completed_at",
        "updated_at",
    )


@admin.register(OrderCounter)
class OrderCounterAdmin(admin.ModelAdmin):
    list_display = ("key", "counter_value")
    readonly_fields = ("key", "counter_value")
