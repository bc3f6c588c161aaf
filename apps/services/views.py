"""
Views for quotes and service projects.

- Quote listing, creation, edition, cancellation and PDF
- Conversion of an approved quote into a project
- Project CRUD with cost metrics and alerts
- Milestones, resources, expenses and payments nested under a project
- Alert feed of open projects
"""

import logging

from django.db import transaction
from django.http import HttpResponse

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core import audit
from apps.core.audit import log_audit_action
from apps.core.exceptions import DomainError, NotFoundError
from apps.core.permissions import (
    HasRolePermission,
    HasTenantAccess,
    require_module,
    require_permission,
)
from apps.sales.models import Document

from . import metrics
from .models import Project, ProjectExpense, ProjectMilestone, ProjectPayment, ProjectResource
from .pdf import QuotePDFGenerator
from .serializers import (
    ConvertQuoteSerializer,
    ProjectExpenseSerializer,
    ProjectMilestoneSerializer,
    ProjectPaymentSerializer,
    ProjectResourceSerializer,
    ProjectSerializer,
    QuoteCreateSerializer,
    QuoteSerializer,
    QuoteUpdateSerializer,
)

logger = logging.getLogger(__name__)

QUOTES_LIMIT = 100
QUOTES_MAX_LIMIT = 300

QUOTE_PERMISSIONS = [permissions.IsAuthenticated, HasTenantAccess, require_module("QUOTES")]


def _quote_queryset(request):
    return (
        Document.objects.filter(tenant=request.user.tenant, doc_type=Document.QUOTE)
        .select_related("customer", "created_by", "project")
        .prefetch_related("items")
    )


def _get_quote(request, quote_id):
    try:
        return _quote_queryset(request).get(id=quote_id)
    except Document.DoesNotExist:
        raise NotFoundError("Cotización no encontrada")


# Quotes


@api_view(["GET", "POST"])
@permission_classes(QUOTE_PERMISSIONS + [require_permission(GET="quotes:view", POST="quotes:create")])
def quote_list(request):
    """
    List or create quotes.

    Query parameters (GET):
    - status: Quote status
    - customer_id: Quotes of one customer
    - limit: Maximum rows (default 100, max 300)
    """
    if request.method == "GET":
        queryset = _quote_queryset(request)
        if request.query_params.get("status"):
            queryset = queryset.filter(status=request.query_params["status"])
        if request.query_params.get("customer_id"):
            queryset = queryset.filter(customer_id=request.query_params["customer_id"])

        try:
            limit = int(request.query_params.get("limit", QUOTES_LIMIT))
        except ValueError:
            limit = QUOTES_LIMIT
        limit = min(max(limit, 1), QUOTES_MAX_LIMIT)

        quotes = queryset.order_by("-issued_at")[:limit]
        return Response({"quotes": QuoteSerializer(quotes, many=True).data})

    serializer = QuoteCreateSerializer(data=request.data, context={"request": request})
    try:
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        quote = serializer.save()
    except DomainError as e:
        return e.to_response()

    log_audit_action(
        audit.CREATE_QUOTE,
        "Document",
        quote.id,
        details={"type": Document.QUOTE, "status": quote.status, "total": quote.total},
        request=request,
    )
    logger.info(f"Quote #{quote.doc_number} created for tenant {quote.tenant_id}")

    quote = _quote_queryset(request).get(id=quote.id)
    return Response({"quote": QuoteSerializer(quote).data}, status=status.HTTP_201_CREATED)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes(
    QUOTE_PERMISSIONS
    + [require_permission(GET="quotes:view", PATCH="quotes:edit", DELETE="quotes:delete")]
)
def quote_detail(request, quote_id):
    """
    Retrieve, edit or cancel a quote. DELETE marks the quote CANCELLED.
    """
    try:
        quote = _get_quote(request, quote_id)
    except DomainError as e:
        return e.to_response()

    if request.method == "GET":
        return Response({"quote": QuoteSerializer(quote).data})

    if request.method == "PATCH":
        previous_status = quote.status
        serializer = QuoteUpdateSerializer(
            quote, data=request.data, partial=True, context={"request": request}
        )
        try:
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        except DomainError as e:
            return e.to_response()

        quote = serializer.save()
        log_audit_action(
            audit.UPDATE_QUOTE,
            "Document",
            quote.id,
            details={
                "before": {"status": previous_status},
                "after": {"status": quote.status},
                "payload": serializer.validated_data,
            },
            request=request,
        )
        quote = _quote_queryset(request).get(id=quote.id)
        return Response({"quote": QuoteSerializer(quote).data})

    if quote.status == Document.CANCELLED:
        return Response(
            {"error": "La cotización ya está cancelada"}, status=status.HTTP_400_BAD_REQUEST
        )

    previous_status = quote.status
    quote.cancel()
    log_audit_action(
        audit.CANCEL_QUOTE,
        "Document",
        quote.id,
        details={"previous_status": previous_status, "new_status": Document.CANCELLED},
        request=request,
    )
    return Response(
        {"message": "Cotización cancelada exitosamente", "quote": QuoteSerializer(quote).data}
    )


@api_view(["POST"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("QUOTES", "PROJECTS"),
        require_permission("quotes:convert"),
    ]
)
def convert_quote(request, quote_id):
    """
    Convert an APPROVED quote into a project.

    Optional body: name, description, start_date, notes.
    """
    try:
        quote = _get_quote(request, quote_id)
    except DomainError as e:
        return e.to_response()

    serializer = ConvertQuoteSerializer(
        data=request.data, context={"request": request, "quote": quote}
    )
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        project = serializer.save()
    except DomainError as e:
        return e.to_response()

    log_audit_action(
        audit.CONVERT_QUOTE_TO_PROJECT,
        "Project",
        project.id,
        details={
            "quote_id": quote.id,
            "quote_number": quote.doc_number,
            "project_name": project.name,
        },
        request=request,
    )
    logger.info(f"Quote #{quote.doc_number} converted to project {project.id}")

    return Response({"project": ProjectSerializer(project).data}, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes(QUOTE_PERMISSIONS + [require_permission("quotes:view")])
def quote_pdf(request, quote_id):
    try:
        quote = _get_quote(request, quote_id)
    except DomainError as e:
        return e.to_response()

    try:
        pdf_bytes = QuotePDFGenerator(quote).generate_pdf()
    except Exception as e:
        logger.error(f"Error generating quote PDF {quote.id}: {e}", exc_info=True)
        return Response(
            {"error": "Error al generar PDF de cotización"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    response = HttpResponse(pdf_bytes, content_type="application/pdf")
    filename = f"{quote.doc_prefix or 'COT'}-{quote.doc_number}.pdf"
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    response["Cache-Control"] = "private, no-store"
    return response


# Projects


class ProjectModuleMixin:
    permission_classes = [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("PROJECTS"),
        HasRolePermission,
    ]

    def handle_exception(self, exc):
        if isinstance(exc, DomainError):
            return exc.to_response()
        return super().handle_exception(exc)


class ProjectListCreateView(ProjectModuleMixin, generics.ListCreateAPIView):
    """
    API endpoint for listing and creating projects.

    Query parameters:
    - status: ACTIVE, ON_HOLD, COMPLETED or CANCELLED
    - customer_id: Projects of one customer
    """

    serializer_class = ProjectSerializer
    required_permission = {"GET": "projects:view", "POST": "projects:create"}

    def get_queryset(self):
        queryset = Project.objects.filter(tenant=self.request.user.tenant).select_related(
            "quote", "customer"
        )

        project_status = self.request.query_params.get("status")
        if project_status:
            queryset = queryset.filter(status=project_status)

        customer_id = self.request.query_params.get("customer_id")
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)

        return queryset.order_by("-created_at")

    def perform_create(self, serializer):
        project = serializer.save()
        log_audit_action(
            audit.CREATE_PROJECT,
            "Project",
            project.id,
            details={"name": project.name, "quote_id": project.quote_id},
            request=self.request,
        )


class ProjectDetailView(ProjectModuleMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    Project detail with cost metrics and alerts.
    """

    serializer_class = ProjectSerializer
    lookup_field = "id"
    required_permission = {
        "GET": "projects:view",
        "PUT": "projects:edit",
        "PATCH": "projects:edit",
        "DELETE": "projects:delete",
    }

    def get_queryset(self):
        return Project.objects.filter(tenant=self.request.user.tenant).select_related(
            "quote", "customer"
        )

    def retrieve(self, request, *args, **kwargs):
        project = self.get_object()
        project_metrics = metrics.project_metrics(project)
        return Response(
            {
                "project": self.get_serializer(project).data,
                "metrics": project_metrics,
                "alerts": metrics.project_alerts(project, project_metrics),
            }
        )

    def perform_update(self, serializer):
        previous = {"name": serializer.instance.name, "status": serializer.instance.status}
        project = serializer.save()
        log_audit_action(
            audit.UPDATE_PROJECT,
            "Project",
            project.id,
            details={
                "before": previous,
                "after": {"name": project.name, "status": project.status},
            },
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        project = self.get_object()
        if project.payments.exists():
            return Response(
                {"error": "No se puede eliminar un proyecto con cobros registrados"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        entity_id, name = project.id, project.name
        project.delete()
        log_audit_action(
            audit.DELETE_PROJECT, "Project", entity_id, details={"name": name}, request=request
        )
        return Response({"message": "Proyecto eliminado exitosamente"})


class ProjectNestedMixin(ProjectModuleMixin):
    """
    Base for records nested under ``/projects/<project_id>/``.

    Lists are returned whole, without pagination.
    """

    pagination_class = None
    lookup_field = "id"
    model = None

    def get_project(self):
        if not hasattr(self, "_project"):
            try:
                self._project = Project.objects.get(
                    id=self.kwargs["project_id"], tenant=self.request.user.tenant
                )
            except Project.DoesNotExist:
                raise NotFoundError("Proyecto no encontrado")
        return self._project

    def get_queryset(self):
        return self.model.objects.filter(project=self.get_project())

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["project"] = self.get_project()
        return context


class ProjectMilestoneListCreateView(ProjectNestedMixin, generics.ListCreateAPIView):
    model = ProjectMilestone
    serializer_class = ProjectMilestoneSerializer
    required_permission = {"GET": "projects:view", "POST": "projects:addMilestone"}

    def perform_create(self, serializer):
        milestone = serializer.save()
        log_audit_action(
            audit.CREATE_PROJECT_MILESTONE,
            "ProjectMilestone",
            milestone.id,
            details={"project_id": milestone.project_id, "name": milestone.name},
            request=self.request,
        )


class ProjectMilestoneDetailView(ProjectNestedMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    Milestone detail. Deleting a milestone keeps its resources and expenses,
    which stay charged to the project.
    """

    model = ProjectMilestone
    serializer_class = ProjectMilestoneSerializer
    required_permission = {
        "GET": "projects:view",
        "PUT": "projects:edit",
        "PATCH": "projects:edit",
        "DELETE": "projects:edit",
    }

    def perform_update(self, serializer):
        milestone = serializer.save()
        log_audit_action(
            audit.UPDATE_PROJECT_MILESTONE,
            "ProjectMilestone",
            milestone.id,
            details=serializer.validated_data,
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        milestone = self.get_object()
        entity_id, name = milestone.id, milestone.name
        milestone.delete()
        log_audit_action(
            audit.DELETE_PROJECT_MILESTONE,
            "ProjectMilestone",
            entity_id,
            details={"project_id": self.get_project().id, "name": name},
            request=request,
        )
        return Response({"message": "Hito eliminado exitosamente"})


class ProjectResourceListCreateView(ProjectNestedMixin, generics.ListCreateAPIView):
    """
    Resources of a project. Creating one adds its total cost to the
    project's actual cost.
    """

    model = ProjectResource
    serializer_class = ProjectResourceSerializer
    required_permission = {"GET": "projects:view", "POST": "projects:addExpense"}

    def perform_create(self, serializer):
        resource = serializer.save()
        log_audit_action(
            audit.CREATE_PROJECT_RESOURCE,
            "ProjectResource",
            resource.id,
            details={
                "project_id": resource.project_id,
                "name": resource.name,
                "total_cost": resource.total_cost,
            },
            request=self.request,
        )


class ProjectResourceDetailView(ProjectNestedMixin, generics.RetrieveUpdateDestroyAPIView):
    model = ProjectResource
    serializer_class = ProjectResourceSerializer
    required_permission = {
        "GET": "projects:view",
        "PUT": "projects:edit",
        "PATCH": "projects:edit",
        "DELETE": "projects:edit",
    }

    def perform_update(self, serializer):
        previous_total = serializer.instance.total_cost
        resource = serializer.save()
        log_audit_action(
            audit.UPDATE_PROJECT_RESOURCE,
            "ProjectResource",
            resource.id,
            details={"previous_total": previous_total, "total_cost": resource.total_cost},
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        resource = self.get_object()
        details = {"name": resource.name, "total_cost": resource.total_cost}
        entity_id = resource.id
        with transaction.atomic():
            resource.delete()
            self.get_project().add_cost(-details["total_cost"])
        log_audit_action(
            audit.DELETE_PROJECT_RESOURCE,
            "ProjectResource",
            entity_id,
            details=details,
            request=request,
        )
        return Response({"message": "Recurso eliminado exitosamente"})


class ProjectExpenseListCreateView(ProjectNestedMixin, generics.ListCreateAPIView):
    model = ProjectExpense
    serializer_class = ProjectExpenseSerializer
    required_permission = {"GET": "projects:view", "POST": "projects:addExpense"}

    def perform_create(self, serializer):
        expense = serializer.save()
        log_audit_action(
            audit.CREATE_PROJECT_EXPENSE,
            "ProjectExpense",
            expense.id,
            details={
                "project_id": expense.project_id,
                "description": expense.description,
                "amount": expense.amount,
            },
            request=self.request,
        )


class ProjectExpenseDetailView(ProjectNestedMixin, generics.RetrieveUpdateDestroyAPIView):
    model = ProjectExpense
    serializer_class = ProjectExpenseSerializer
    required_permission = {
        "GET": "projects:view",
        "PUT": "projects:edit",
        "PATCH": "projects:edit",
        "DELETE": "projects:edit",
    }

    def perform_update(self, serializer):
        expense = serializer.save()
        log_audit_action(
            audit.UPDATE_PROJECT_EXPENSE,
            "ProjectExpense",
            expense.id,
            details=serializer.validated_data,
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        expense = self.get_object()
        details = {"description": expense.description, "amount": expense.amount}
        entity_id = expense.id
        with transaction.atomic():
            expense.delete()
            self.get_project().add_cost(-details["amount"])
        log_audit_action(
            audit.DELETE_PROJECT_EXPENSE,
            "ProjectExpense",
            entity_id,
            details=details,
            request=request,
        )
        return Response({"message": "Gasto eliminado exitosamente"})


class ProjectPaymentListCreateView(ProjectNestedMixin, generics.ListCreateAPIView):
    """
    Payments collected for a project. The collected total may not exceed
    the contracted amount.
    """

    model = ProjectPayment
    serializer_class = ProjectPaymentSerializer
    required_permission = {"GET": "projects:view", "POST": "projects:edit"}

    def perform_create(self, serializer):
        payment = serializer.save()
        log_audit_action(
            audit.CREATE_PROJECT_PAYMENT,
            "ProjectPayment",
            payment.id,
            details={
                "project_id": payment.project_id,
                "amount": payment.amount,
                "payment_method": payment.payment_method,
            },
            request=self.request,
        )


@api_view(["GET"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("PROJECTS"),
        require_permission("projects:view"),
    ]
)
def service_alerts(request):
    """
    Budget and schedule alerts of the open projects.
    """
    return Response(metrics.service_alerts(request.user.tenant))
