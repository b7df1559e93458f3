# dues/admin.py

from django.contrib import admin

from dues.models import DuePayment, DuePaymentAllocation


class DuePaymentAllocationInline(admin.TabularInline):
    model = DuePaymentAllocation
    extra = 0
    can_delete = False
    readonly_fields = ("order", "amount", "created_at")


@admin.register(DuePayment)
class DuePaymentAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "customer_id",
        "amount",
        "unapplied_amount",
        "payment_method",
        "payment_date",
        "branch",
    )
    list_filter = ("payment_method", "branch")
    search_fields = ("reference", "note")
    ordering = ("-payment_date",)
    inlines = [DuePaymentAllocationInline]

    # Amounts move only through the allocation engine
    readonly_fields = ("customer", "amount", "unapplied_amount", "recorded_by", "created_at")

    def has_delete_permission(self, request, obj=None):
        # Deletion must go through delete_due_payment (allocation reversal)
        return False


@admin.register(DuePaymentAllocation)
class DuePaymentAllocationAdmin(admin.ModelAdmin):
    list_display = ("payment", "order", "amount", "created_at")
    readonly_fields = ("payment", "order", "amount", "created_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
