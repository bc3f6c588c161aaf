from django.contrib import admin

from .models import Credit, CreditPayment


class CreditPaymentInline(admin.TabularInline):
    model = CreditPayment
    extra = 0
    readonly_fields = ["amount", "payment_method", "paid_at", "created_by"]


@admin.register(Credit)
class CreditAdmin(admin.ModelAdmin):
    list_display = ["customer", "amount", "balance", "status", "due_date", "tenant"]
    list_filter = ["status", "tenant"]
    search_fields = ["customer__name", "customer__rut", "description"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [CreditPaymentInline]


@admin.register(CreditPayment)
class CreditPaymentAdmin(admin.ModelAdmin):
    list_display = ["credit", "customer", "amount", "payment_method", "paid_at", "tenant"]
    list_filter = ["payment_method", "tenant"]
    search_fields = ["customer__name", "reference"]
