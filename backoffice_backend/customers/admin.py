# customers/admin.py

from django.contrib import admin

from customers.models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "email", "branch", "created_at")
    list_filter = ("branch",)
    search_fields = ("name", "phone", "email")
    ordering = ("name",)
