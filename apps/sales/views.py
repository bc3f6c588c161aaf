"""
Views for customers and commercial documents.

- Customer CRUD
- Document creation from the POS, listing, detail, edition and cancellation
- Totals preview for the POS cart
"""

import logging

from django.db import transaction
from django.db.models import Q

from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core import audit
from apps.core.audit import log_audit_action
from apps.core.exceptions import DomainError
from apps.core.filters import date_param
from apps.core.permissions import (
    HasRolePermission,
    HasTenantAccess,
    require_module,
    require_permission,
)

from .models import Customer, Document
from .serializers import (
    CustomerSerializer,
    DocumentCreateSerializer,
    DocumentSerializer,
    DocumentUpdateSerializer,
    TotalsPreviewSerializer,
)
from .totals import calculate_document_totals, round_cash_payment_amount

logger = logging.getLogger(__name__)


# Customers


class CustomerListCreateView(generics.ListCreateAPIView):
    """
    API endpoint for listing and creating customers.

    Query parameters:
    - search: Search by name, RUT, email, phone or company
    - is_active: Filter by active status
    - with_debt: Only customers with outstanding debt
    """

    serializer_class = CustomerSerializer
    permission_classes = [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("CUSTOMERS", "POS"),
        HasRolePermission,
    ]
    required_permission = {"GET": "customers:view", "POST": "customers:create"}

    def get_queryset(self):
        queryset = Customer.objects.filter(tenant=self.request.user.tenant)

        search = self.request.query_params.get("search")
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search)
                | Q(rut__icontains=search.replace(".", "").replace("-", ""))
                | Q(email__icontains=search)
                | Q(phone__icontains=search)
                | Q(company__icontains=search)
            )

        is_active = self.request.query_params.get("is_active")
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() in ["true", "1", "yes"])

        with_debt = self.request.query_params.get("with_debt")
        if with_debt and with_debt.lower() in ["true", "1", "yes"]:
            queryset = queryset.filter(current_debt__gt=0)

        return queryset.order_by("name")

    def perform_create(self, serializer):
        customer = serializer.save(tenant=self.request.user.tenant)
        log_audit_action(
            audit.CREATE_CUSTOMER,
            "Customer",
            customer.id,
            details={"name": customer.name, "rut": customer.rut},
            request=self.request,
        )


class CustomerDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    Customer detail. Customers with outstanding debt cannot be deleted.
    """

    serializer_class = CustomerSerializer
    permission_classes = [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("CUSTOMERS", "POS"),
        HasRolePermission,
    ]
    required_permission = {
        "GET": "customers:view",
        "PUT": "customers:edit",
        "PATCH": "customers:edit",
        "DELETE": "customers:delete",
    }
    lookup_field = "id"

    def get_queryset(self):
        return Customer.objects.filter(tenant=self.request.user.tenant)

    def perform_update(self, serializer):
        customer = serializer.save()
        log_audit_action(
            audit.UPDATE_CUSTOMER,
            "Customer",
            customer.id,
            details={"changes": sorted(serializer.validated_data.keys())},
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        customer = self.get_object()
        if customer.current_debt > 0:
            return Response(
                {"error": "No se puede eliminar un cliente con deuda pendiente"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        details = {"name": customer.name, "rut": customer.rut}
        entity_id = customer.id
        customer.delete()
        log_audit_action(
            audit.DELETE_CUSTOMER, "Customer", entity_id, details=details, request=request
        )
        return Response({"message": "Cliente eliminado exitosamente"})


# Documents


class DocumentListCreateView(generics.ListCreateAPIView):
    """
    API endpoint for listing and creating documents.

    Query parameters:
    - type: Document type (SALE, QUOTE, ...)
    - status: Document status
    - customer_id: Documents of one customer
    - start_date / end_date: Issue date range (YYYY-MM-DD)
    - search: Document number or customer name
    """

    serializer_class = DocumentSerializer
    permission_classes = [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("DOCUMENTS", "POS"),
        HasRolePermission,
    ]
    required_permission = {"GET": "documents:view", "POST": "documents:create"}

    def get_queryset(self):
        queryset = (
            Document.objects.filter(tenant=self.request.user.tenant)
            .select_related("customer", "created_by")
            .prefetch_related("items")
        )

        doc_type = self.request.query_params.get("type")
        if doc_type:
            queryset = queryset.filter(doc_type=doc_type)

        doc_status = self.request.query_params.get("status")
        if doc_status:
            queryset = queryset.filter(status=doc_status)

        customer_id = self.request.query_params.get("customer_id")
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)

        start_date = date_param(self.request.query_params, "start_date")
        if start_date:
            queryset = queryset.filter(issued_at__date__gte=start_date)

        end_date = date_param(self.request.query_params, "end_date")
        if end_date:
            queryset = queryset.filter(issued_at__date__lte=end_date)

        search = self.request.query_params.get("search")
        if search:
            search_filter = Q(customer__name__icontains=search)
            if search.isdigit():
                search_filter |= Q(doc_number=int(search))
            queryset = queryset.filter(search_filter)

        return queryset.order_by("-issued_at")

    def create(self, request, *args, **kwargs):
        serializer = DocumentCreateSerializer(data=request.data, context={"request": request})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            document = serializer.save()
        except DomainError as e:
            return e.to_response()

        log_audit_action(
            audit.CREATE_DOCUMENT,
            "Document",
            document.id,
            details={
                "type": document.doc_type,
                "total": str(document.total),
                "items_count": document.items.count(),
            },
            request=request,
        )
        logger.info(
            f"Document {document.doc_type} #{document.doc_number} created "
            f"for tenant {document.tenant_id}"
        )

        return Response(DocumentSerializer(document).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("DOCUMENTS", "POS"),
        require_permission(
            GET="documents:view", PATCH="documents:edit", DELETE="documents:cancel"
        ),
    ]
)
def document_detail(request, document_id):
    """
    Retrieve, edit or cancel a document.

    DELETE never removes the row: the document is marked CANCELLED and a
    paid sale gives its stock back.
    """
    try:
        document = (
            Document.objects.select_related("customer", "created_by")
            .prefetch_related("items")
            .get(id=document_id, tenant=request.user.tenant)
        )
    except Document.DoesNotExist:
        return Response(
            {"error": "Documento no encontrado"},
            status=status.HTTP_404_NOT_FOUND,
        )

    if request.method == "GET":
        return Response(DocumentSerializer(document).data)

    if request.method == "PATCH":
        if not document.is_editable():
            return Response(
                {
                    "error": f"No se puede editar un documento en estado {document.status}",
                    "code": "NOT_EDITABLE",
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = DocumentUpdateSerializer(
            document, data=request.data, partial=True, context={"request": request}
        )
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        document = serializer.save()
        log_audit_action(
            audit.UPDATE_DOCUMENT,
            "Document",
            document.id,
            details=serializer.validated_data,
            request=request,
        )
        return Response(DocumentSerializer(document).data)

    previous_status = document.status
    try:
        with transaction.atomic():
            if document.status == Document.PAID and document.doc_type == Document.SALE:
                document.move_stock(direction=1)
            document.cancel()
    except ValueError as e:
        return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

    log_audit_action(
        audit.CANCEL_DOCUMENT,
        "Document",
        document.id,
        details={"previous_status": previous_status, "new_status": Document.CANCELLED},
        request=request,
    )
    return Response(
        {
            "message": "Documento cancelado exitosamente",
            "document": DocumentSerializer(document).data,
        }
    )


@api_view(["POST"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("POS", "DOCUMENTS", "QUOTES"),
        require_permission("pos:view"),
    ]
)
def calculate_totals(request):
    """
    Preview the totals of a cart without saving anything.
    """
    serializer = TotalsPreviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    totals = calculate_document_totals(
        serializer.validated_data["items"], serializer.validated_data["discount"]
    )
    totals["rounded_cash_total"] = round_cash_payment_amount(totals["total"])
    return Response(totals)
