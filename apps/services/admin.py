"""
Admin configuration for service project models.
"""

from django.contrib import admin

from .models import Project, ProjectExpense, ProjectMilestone, ProjectPayment, ProjectResource


class ProjectMilestoneInline(admin.TabularInline):
    model = ProjectMilestone
    extra = 0
    fields = ["name", "due_date", "estimated_cost", "is_completed", "position"]


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ["name", "customer", "status", "budget", "actual_cost", "start_date", "tenant"]
    list_filter = ["status", "tenant"]
    search_fields = ["name", "customer__name"]
    readonly_fields = ["actual_cost", "created_at", "updated_at"]
    inlines = [ProjectMilestoneInline]


@admin.register(ProjectResource)
class ProjectResourceAdmin(admin.ModelAdmin):
    list_display = ["name", "project", "quantity", "consumed_quantity", "unit_cost", "total_cost"]
    search_fields = ["name", "sku", "project__name"]
    readonly_fields = ["total_cost", "created_at", "updated_at"]


@admin.register(ProjectExpense)
class ProjectExpenseAdmin(admin.ModelAdmin):
    list_display = ["description", "project", "category", "amount", "expense_date"]
    search_fields = ["description", "project__name"]
    date_hierarchy = "expense_date"


@admin.register(ProjectPayment)
class ProjectPaymentAdmin(admin.ModelAdmin):
    list_display = ["project", "amount", "payment_method", "paid_at", "reference"]
    list_filter = ["payment_method"]
    date_hierarchy = "paid_at"
