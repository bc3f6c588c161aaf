"""
Views for the product catalog.

- Product list with search and filters, create with SKU generation
- Product detail, update and delete (soft when the product was sold)
- SKU generation and exact SKU/barcode lookup for scanners
- Printable label sheets
- Category management
"""

import logging

from django.db.models import F, Q, Value
from django.db.models.functions import Replace, Upper
from django.http import HttpResponse

from rest_framework import filters, generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core import audit
from apps.core.audit import log_audit_action
from apps.core.permissions import (
    HasRolePermission,
    HasTenantAccess,
    require_module,
    require_permission,
)

from .labels import LabelSheetGenerator
from .models import Category, Product
from .serializers import CategorySerializer, LabelRequestSerializer, ProductSerializer
from .sku import generate_unique_sku, normalize_sku

logger = logging.getLogger(__name__)

TRUE_VALUES = ["true", "1", "yes"]


class InventoryModuleMixin:
    permission_classes = [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("INVENTORY"),
        HasRolePermission,
    ]


class ProductListCreateView(InventoryModuleMixin, generics.ListCreateAPIView):
    """
    API endpoint for listing and creating products.

    Supports:
    - Search by name, SKU, barcode, description
    - Filter by category, type, is_active, low_stock
    - Ordering by name, sku, price, stock and dates
    """

    serializer_class = ProductSerializer
    required_permission = {"GET": "products:view", "POST": "products:create"}
    filter_backends = [filters.OrderingFilter]
    ordering_fields = ["name", "sku", "price", "current_stock", "created_at", "updated_at"]
    ordering = ["name"]

    def get_queryset(self):
        """
        Get products for the current user's tenant with filters.
        """
        queryset = Product.objects.filter(tenant=self.request.user.tenant).select_related(
            "category"
        )

        # Search functionality
        search = self.request.query_params.get("search", None)
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search)
                | Q(sku__icontains=search)
                | Q(barcode__icontains=search)
                | Q(description__icontains=search)
            )

        category_id = self.request.query_params.get("category_id", None)
        if category_id:
            queryset = queryset.filter(category_id=category_id)

        product_type = self.request.query_params.get("type", None)
        if product_type:
            queryset = queryset.filter(product_type=product_type.upper())

        is_active = self.request.query_params.get("is_active", None)
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() in TRUE_VALUES)

        low_stock = self.request.query_params.get("low_stock", None)
        if low_stock and low_stock.lower() in TRUE_VALUES:
            queryset = queryset.filter(track_inventory=True, current_stock__lte=F("min_stock"))

        return queryset

    def perform_create(self, serializer):
        """Set tenant from current user."""
        product = serializer.save(tenant=self.request.user.tenant)
        log_audit_action(
            audit.CREATE_PRODUCT,
            "Product",
            product.id,
            details={"sku": product.sku, "name": product.name, "price": product.price},
            request=self.request,
        )


class ProductDetailView(InventoryModuleMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    API endpoint for retrieving, updating and deleting a product.

    Products already used on documents are deactivated instead of deleted.
    """

    serializer_class = ProductSerializer
    required_permission = {
        "GET": "products:view",
        "PATCH": "products:edit",
        "PUT": "products:edit",
        "DELETE": "products:delete",
    }
    lookup_field = "id"

    def get_queryset(self):
        return Product.objects.filter(tenant=self.request.user.tenant).select_related("category")

    def perform_update(self, serializer):
        product = serializer.save()
        log_audit_action(
            audit.UPDATE_PRODUCT,
            "Product",
            product.id,
            details={"changes": sorted(serializer.validated_data.keys())},
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        details = {"sku": product.sku, "name": product.name}

        if product.document_items.exists():
            product.is_active = False
            product.save(update_fields=["is_active", "updated_at"])
            details["soft_delete"] = True
            log_audit_action(
                audit.DELETE_PRODUCT, "Product", product.id, details=details, request=request
            )
            return Response(
                {
                    "message": "Producto desactivado porque tiene documentos asociados",
                    "soft_delete": True,
                }
            )

        entity_id = product.id
        product.delete()
        details["soft_delete"] = False
        log_audit_action(
            audit.DELETE_PRODUCT, "Product", entity_id, details=details, request=request
        )
        return Response({"message": "Producto eliminado exitosamente", "soft_delete": False})


@api_view(["GET"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("INVENTORY"),
        require_permission("products:create"),
    ]
)
def generate_sku(request):
    """
    Return a SKU that is not used by any product of the tenant.
    """
    try:
        sku = generate_unique_sku(request.user.tenant)
    except RuntimeError as e:
        logger.error(f"SKU generation failed for tenant {request.user.tenant_id}: {e}")
        return Response({"error": str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response({"sku": sku})


@api_view(["GET"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("INVENTORY"),
        require_permission("products:view"),
    ]
)
def search_by_sku(request):
    """
    Exact lookup by normalized SKU or barcode, used by barcode scanners.

    Returns ``{"found": false, "sku": ...}`` (200) when nothing matches.
    """
    raw = request.query_params.get("sku", "")
    if not raw.strip():
        return Response({"error": "SKU es requerido"}, status=status.HTTP_400_BAD_REQUEST)

    sku = normalize_sku(raw)
    product = (
        Product.objects.filter(tenant=request.user.tenant)
        .annotate(
            normalized_sku=Replace(
                Replace(Upper("sku"), Value("-"), Value("")), Value(" "), Value("")
            )
        )
        .filter(Q(normalized_sku=sku) | Q(barcode=sku) | Q(barcode=raw.strip()))
        .select_related("category")
        .first()
    )
    if product is None:
        return Response({"found": False, "sku": sku})

    return Response({"found": True, "product": ProductSerializer(product).data})


@api_view(["POST"])
@permission_classes(
    [
        permissions.IsAuthenticated,
        HasTenantAccess,
        require_module("INVENTORY"),
        require_permission("products:view"),
    ]
)
def product_labels(request):
    """
    Render a PDF label sheet.

    Body: ``{"items": [{"product_id": ..., "copies": n}], "show_price": true}``
    """
    serializer = LabelRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    items = serializer.validated_data["items"]
    products = {
        product.id: product
        for product in Product.objects.filter(
            tenant=request.user.tenant, id__in=[item["product_id"] for item in items]
        )
    }

    missing = [str(item["product_id"]) for item in items if item["product_id"] not in products]
    if missing:
        return Response(
            {"error": "Producto no encontrado", "details": {"product_ids": missing}},
            status=status.HTTP_404_NOT_FOUND,
        )

    entries = [(products[item["product_id"]], item["copies"]) for item in items]
    try:
        pdf_bytes = LabelSheetGenerator(
            entries, show_price=serializer.validated_data["show_price"]
        ).generate_pdf()
    except Exception as e:
        logger.error(f"Label generation failed: {e}", exc_info=True)
        return Response(
            {"error": "Error al generar etiquetas"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    response = HttpResponse(pdf_bytes, content_type="application/pdf")
    response["Content-Disposition"] = 'inline; filename="etiquetas.pdf"'
    return response


class CategoryListCreateView(InventoryModuleMixin, generics.ListCreateAPIView):
    serializer_class = CategorySerializer
    required_permission = {"GET": "products:view", "POST": "products:create"}
    pagination_class = None

    def get_queryset(self):
        return Category.objects.filter(tenant=self.request.user.tenant).order_by("name")

    def perform_create(self, serializer):
        serializer.save(tenant=self.request.user.tenant)


class CategoryDetailView(InventoryModuleMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    Category detail. Deleting a category detaches its products.
    """

    serializer_class = CategorySerializer
    required_permission = {
        "GET": "products:view",
        "PATCH": "products:edit",
        "PUT": "products:edit",
        "DELETE": "products:delete",
    }
    lookup_field = "id"

    def get_queryset(self):
        return Category.objects.filter(tenant=self.request.user.tenant)

    def destroy(self, request, *args, **kwargs):
        category = self.get_object()
        detached = category.products.update(category=None)
        category.delete()
        return Response(
            {"message": "Categoría eliminada exitosamente", "detached_products": detached}
        )
