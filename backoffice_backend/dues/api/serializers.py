# dues/api/serializers.py

from decimal import Decimal

from rest_framework import serializers

from dues.models import DuePayment, DuePaymentAllocation
from orders.models import Order


# ==========================================================
# OUTPUT
# ==========================================================

class DuePaymentAllocationSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)
    order_payment_status = serializers.CharField(
        source="order.payment_status", read_only=True
    )

    class Meta:
        model = DuePaymentAllocation
        fields = [
            "id",
            "payment",
            "order",
            "order_number",
            "order_payment_status",
            "amount",
            "created_at",
        ]
        read_only_fields = fields


class DuePaymentSerializer(serializers.ModelSerializer):
    allocations = DuePaymentAllocationSerializer(many=True, read_only=True)
    recorded_by_email = serializers.EmailField(
        source="recorded_by.email", read_only=True, default=None
    )

    class Meta:
        model = DuePayment
        fields = [
            "id",
            "customer",
            "amount",
            "unapplied_amount",
            "payment_method",
            "payment_date",
            "reference",
            "note",
            "payment_slips",
            "branch",
            "recorded_by",
            "recorded_by_email",
            "created_at",
            "allocations",
        ]
        read_only_fields = fields


class DueOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer",
            "customer_name",
            "branch",
            "order_source",
            "total",
            "due_amount",
            "paid_amount",
            "payment_status",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class SummaryCustomerSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField()
    phone = serializers.CharField(allow_null=True)
    email = serializers.CharField(allow_null=True)
    branch_id = serializers.UUIDField(allow_null=True)
    notes = serializers.CharField(allow_null=True)
    created_at = serializers.DateTimeField()
    is_placeholder = serializers.BooleanField()


class CustomerDueFiguresSerializer(serializers.Serializer):
    total_due = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_paid = serializers.DecimalField(max_digits=14, decimal_places=2)
    balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    credit = serializers.DecimalField(max_digits=14, decimal_places=2)
    orders_count = serializers.IntegerField()


class CustomerDueSummarySerializer(CustomerDueFiguresSerializer):
    customer = SummaryCustomerSerializer()


class CustomerDueSummaryPageSerializer(serializers.Serializer):
    summaries = CustomerDueSummarySerializer(many=True)
    total = serializers.IntegerField()


class CustomerDueStatsSerializer(serializers.Serializer):
    total_customers = serializers.IntegerField()
    pending_dues = serializers.IntegerField()
    total_outstanding = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_collected = serializers.DecimalField(max_digits=14, decimal_places=2)


class TransactionLineSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    type = serializers.ChoiceField(choices=["due", "payment"])
    date = serializers.DateTimeField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    description = serializers.CharField()
    payment_method = serializers.CharField(allow_null=True)
    order_id = serializers.UUIDField(allow_null=True)
    order_number = serializers.CharField(allow_null=True)
    payment_status = serializers.CharField(allow_null=True)
    paid_amount = serializers.DecimalField(max_digits=14, decimal_places=2, allow_null=True)
    payment_id = serializers.UUIDField(allow_null=True)
    unapplied_amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, allow_null=True
    )


class TransactionPageSerializer(serializers.Serializer):
    transactions = TransactionLineSerializer(many=True)
    total = serializers.IntegerField()


class FifoLineSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    order_number = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class FifoPreviewResultSerializer(serializers.Serializer):
    allocations = FifoLineSerializer(many=True)
    unapplied_amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class BulkDeleteResultSerializer(serializers.Serializer):
    deleted_count = serializers.IntegerField()
    errors = serializers.ListField(child=serializers.DictField())


# ==========================================================
# INPUT
# ==========================================================

class AllocationInputSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )


class DuePaymentCreateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    payment_method = serializers.CharField(max_length=32)
    payment_date = serializers.DateTimeField(required=False, allow_null=True)
    reference = serializers.CharField(required=False, allow_blank=True, default="")
    note = serializers.CharField(required=False, allow_blank=True, default="")
    payment_slips = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )
    branch_id = serializers.UUIDField(required=False, allow_null=True)

    # Omitted -> FIFO; [] -> whole amount kept as credit
    allocations = AllocationInputSerializer(many=True, required=False, allow_null=True)


class DuePaymentUpdateSerializer(serializers.Serializer):
    payment_method = serializers.CharField(max_length=32, required=False)
    payment_date = serializers.DateTimeField(required=False)
    reference = serializers.CharField(required=False, allow_blank=True)
    note = serializers.CharField(required=False, allow_blank=True)
    payment_slips = serializers.ListField(child=serializers.CharField(), required=False)


class BulkDeleteInputSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class FifoPreviewInputSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    branch_id = serializers.UUIDField(required=False, allow_null=True)


class DueEntryCreateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    description = serializers.CharField(required=False, allow_blank=True, default="")
    branch_id = serializers.UUIDField(required=False, allow_null=True)
    created_at = serializers.DateTimeField(required=False, allow_null=True)


class SummaryQuerySerializer(serializers.Serializer):
    branch_id = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    search = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(
        choices=["all", "pending", "cleared", "no-record"], required=False
    )
    min_amount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    max_amount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    limit = serializers.IntegerField(required=False, min_value=1)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)


class TransactionQuerySerializer(serializers.Serializer):
    branch_id = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    search = serializers.CharField(required=False, allow_blank=True)
    limit = serializers.IntegerField(required=False, min_value=1, default=50)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)
