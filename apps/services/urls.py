"""
URL configuration for quotes and service projects.
"""

from django.urls import path

from . import views

app_name = "services"

urlpatterns = [
    # Quotes
    path("api/services/quotes/", views.quote_list, name="quote_list"),
    path("api/services/quotes/<uuid:quote_id>/", views.quote_detail, name="quote_detail"),
    path(
        "api/services/quotes/<uuid:quote_id>/convert/",
        views.convert_quote,
        name="quote_convert",
    ),
    path("api/services/quotes/<uuid:quote_id>/pdf/", views.quote_pdf, name="quote_pdf"),
    # Projects
    path("api/services/projects/", views.ProjectListCreateView.as_view(), name="project_list"),
    path(
        "api/services/projects/<uuid:id>/",
        views.ProjectDetailView.as_view(),
        name="project_detail",
    ),
    path(
        "api/services/projects/<uuid:project_id>/milestones/",
        views.ProjectMilestoneListCreateView.as_view(),
        name="project_milestone_list",
    ),
    path(
        "api/services/projects/<uuid:project_id>/milestones/<uuid:id>/",
        views.ProjectMilestoneDetailView.as_view(),
        name="project_milestone_detail",
    ),
    path(
        "api/services/projects/<uuid:project_id>/resources/",
        views.ProjectResourceListCreateView.as_view(),
        name="project_resource_list",
    ),
    path(
        "api/services/projects/<uuid:project_id>/resources/<uuid:id>/",
        views.ProjectResourceDetailView.as_view(),
        name="project_resource_detail",
    ),
    path(
        "api/services/projects/<uuid:project_id>/expenses/",
        views.ProjectExpenseListCreateView.as_view(),
        name="project_expense_list",
    ),
    path(
        "api/services/projects/<uuid:project_id>/expenses/<uuid:id>/",
        views.ProjectExpenseDetailView.as_view(),
        name="project_expense_detail",
    ),
    path(
        "api/services/projects/<uuid:project_id>/payments/",
        views.ProjectPaymentListCreateView.as_view(),
        name="project_payment_list",
    ),
    # Alerts
    path("api/services/alerts/", views.service_alerts, name="service_alerts"),
]
