"""
Serializers for customers and commercial documents.

- Customer CRUD with RUT validation
- Document creation through the point of sale
- Document partial updates and totals preview
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from rest_framework import serializers

from apps.cash_register.models import CashRegister
from apps.core.exceptions import DomainError, NotFoundError
from apps.core.formatting_utils import round_amount
from apps.core.validators import clean_rut, format_rut, validate_rut
from apps.credits.models import Credit
from apps.inventory.models import Product

from .models import Customer, Document, DocumentItem
from .totals import calculate_document_totals, round_cash_payment_amount

logger = logging.getLogger(__name__)

CREDIT_TERM_DAYS = 30


class CustomerSerializer(serializers.ModelSerializer):
    """Serializer for Customer model."""

    rut = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    rut_formatted = serializers.SerializerMethodField()
    available_credit = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )

    class Meta:
        model = Customer
        fields = [
            "id",
            "rut",
            "rut_formatted",
            "name",
            "company",
            "email",
            "phone",
            "address",
            "city",
            "region",
            "credit_limit",
            "current_debt",
            "available_credit",
            "notes",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "current_debt", "created_at", "updated_at"]

    def get_rut_formatted(self, obj):
        return format_rut(obj.rut) if obj.rut else None

    def validate_rut(self, value):
        """Validate RUT format and uniqueness within tenant."""
        if not value:
            return None
        cleaned = clean_rut(value)
        if not validate_rut(cleaned):
            raise serializers.ValidationError("RUT inválido")

        tenant = self.context["request"].user.tenant
        queryset = Customer.objects.filter(tenant=tenant, rut=cleaned)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Ya existe un cliente con este RUT")
        return cleaned

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("El nombre es requerido")
        return value


class DocumentItemInputSerializer(serializers.Serializer):
    """Item of a document being created."""

    product_id = serializers.UUIDField(required=False, allow_null=True)
    sku = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    quantity = serializers.DecimalField(
        max_digits=12,
        decimal_places=3,
        min_value=Decimal("0.001"),
        max_value=Decimal("9999999"),
    )
    unit = serializers.CharField(max_length=20, default="unidad")
    unit_price = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("9999999999")
    )
    discount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0")
    )
    discount_percent = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        required=False,
        allow_null=True,
    )
    tax_rate = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        default=Decimal("19"),
    )

    def validate(self, data):
        if not data.get("product_id") and not (data.get("name") or "").strip():
            raise serializers.ValidationError(
                {"name": "El nombre del producto/servicio es requerido"}
            )
        return data


class DocumentCreateSerializer(serializers.Serializer):
    """
    Serializer for creating a document through the POS.

    Business rule failures raise ``DomainError`` so the view can answer
    with the error code and its details.
    """

    customer_id = serializers.UUIDField(required=False, allow_null=True)
    type = serializers.ChoiceField(choices=Document.TYPE_CHOICES, default=Document.SALE)
    status = serializers.ChoiceField(choices=Document.STATUS_CHOICES, default=Document.DRAFT)
    doc_prefix = serializers.CharField(
        max_length=20, required=False, allow_blank=True, allow_null=True
    )
    due_at = serializers.DateTimeField(required=False, allow_null=True)
    payment_method = serializers.ChoiceField(
        choices=Document.PAYMENT_METHOD_CHOICES, default=Document.CASH
    )
    tax_rate = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        default=Decimal("19"),
    )
    discount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0")
    )
    cash_received = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, allow_null=True)
    items = DocumentItemInputSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("El documento debe tener al menos un ítem")
        return value

    def validate(self, data):
        if data["payment_method"] == Document.CREDIT and not data.get("customer_id"):
            raise serializers.ValidationError(
                {"customer_id": "Debes seleccionar un cliente para ventas a crédito"}
            )
        return data

    def _active_cash_register(self, tenant, user):
        return CashRegister.objects.filter(
            tenant=tenant, user=user, status=CashRegister.OPEN
        ).first()

    def _load_products(self, tenant, items_data):
        product_ids = {item["product_id"] for item in items_data if item.get("product_id")}
        products = {
            product.id: product
            for product in Product.objects.filter(tenant=tenant, id__in=product_ids)
        }
        missing = product_ids - set(products)
        if missing:
            raise NotFoundError("Producto/servicio no encontrado")
        return products

    def _check_credit_limit(self, customer, total):
        credit_limit = customer.credit_limit or Decimal("0")
        available_credit = credit_limit - customer.current_debt
        if total > available_credit:
            logger.warning(
                f"Credit limit exceeded for customer {customer.id}: "
                f"total {total}, available {available_credit}"
            )
            raise DomainError(
                "Límite de crédito excedido",
                code="CREDIT_LIMIT_EXCEEDED",
                details={
                    "customer_name": customer.name,
                    "credit_limit": credit_limit,
                    "current_debt": customer.current_debt,
                    "available_credit": available_credit,
                    "sale_total": total,
                },
            )

    @transaction.atomic
    def create(self, validated_data):
        """
        Create the document with its items.

        1. Require an open cash register for paid sales
        2. Compute totals and validate the global discount and cash received
        3. Number the document within its type
        4. Check the customer's credit limit for CREDIT payments
        5. Create the document and its items
        6. Open a credit for CREDIT payments and raise the customer's debt
        7. Decrement stock of tracked products for paid sales
        """
        request = self.context["request"]
        tenant = request.user.tenant
        user = request.user

        items_data = validated_data["items"]
        doc_type = validated_data["type"]
        doc_status = validated_data["status"]
        payment_method = validated_data["payment_method"]
        cash_received = validated_data.get("cash_received")

        cash_register = None
        if doc_type == Document.SALE and doc_status == Document.PAID:
            cash_register = self._active_cash_register(tenant, user)
            if cash_register is None:
                raise DomainError(
                    "Debes abrir una caja registradora antes de procesar ventas",
                    code="NO_ACTIVE_CASH_REGISTER",
                )

        totals = calculate_document_totals(items_data, validated_data["discount"])
        if validated_data["discount"] > totals["gross_before_global_discount"]:
            raise DomainError(
                "El descuento global no puede superar el total bruto de los ítems"
            )

        total = totals["total"]
        rounded_cash_total = round_cash_payment_amount(total)
        if (
            payment_method == Document.CASH
            and cash_received is not None
            and cash_received < rounded_cash_total
        ):
            logger.warning(
                f"Insufficient cash for tenant {tenant.id}: "
                f"received {cash_received}, required {rounded_cash_total}"
            )
            raise DomainError(
                "El efectivo recibido no alcanza el total a pagar con redondeo legal",
                code="INSUFFICIENT_CASH",
                details={
                    "rounded_cash_total": rounded_cash_total,
                    "cash_received": cash_received,
                },
            )

        cash_change = None
        if payment_method == Document.CASH and cash_received:
            cash_change = cash_received - rounded_cash_total

        products = self._load_products(tenant, items_data)

        customer = None
        customer_id = validated_data.get("customer_id")
        if customer_id:
            try:
                customer = Customer.objects.select_for_update().get(id=customer_id, tenant=tenant)
            except Customer.DoesNotExist:
                raise NotFoundError("Cliente no encontrado")

        if payment_method == Document.CREDIT:
            self._check_credit_limit(customer, total)

        card_commission = Decimal("0.00")
        if payment_method == Document.CARD and tenant.card_commission_percent:
            card_commission = round_amount(total * tenant.card_commission_percent / 100, 2)

        doc_number = Document.next_number(tenant, doc_type)
        document = Document.objects.create(
            tenant=tenant,
            doc_type=doc_type,
            doc_number=doc_number,
            doc_prefix=validated_data.get("doc_prefix") or "",
            status=doc_status,
            customer=customer,
            cash_register=cash_register,
            created_by=user,
            payment_method=payment_method,
            subtotal=totals["subtotal"],
            tax_rate=validated_data["tax_rate"],
            tax_amount=totals["tax_amount"],
            discount=totals["global_discount_applied"],
            total=total,
            cash_received=cash_received or None,
            cash_change=cash_change or None,
            card_commission_amount=card_commission,
            notes=validated_data.get("notes") or "",
            due_at=validated_data.get("due_at"),
            paid_at=timezone.now() if doc_status == Document.PAID else None,
        )

        for item_data, item_totals in zip(items_data, totals["items"]):
            product = products.get(item_data.get("product_id"))
            DocumentItem.objects.create(
                document=document,
                product=product,
                sku=item_data.get("sku") or (product.sku if product else ""),
                name=(item_data.get("name") or "").strip() or product.name,
                description=item_data.get("description") or "",
                quantity=item_data["quantity"],
                unit=item_data.get("unit") or "unidad",
                unit_price=item_data["unit_price"],
                discount=item_data.get("discount") or Decimal("0"),
                discount_percent=item_data.get("discount_percent"),
                tax_rate=item_data["tax_rate"],
                subtotal=item_totals["subtotal"],
                tax_amount=item_totals["tax_amount"],
                total=item_totals["total"],
            )

        if payment_method == Document.CREDIT:
            Credit.objects.create(
                tenant=tenant,
                customer=customer,
                document=document,
                amount=total,
                balance=total,
                status=Credit.ACTIVE,
                due_date=timezone.now() + timedelta(days=CREDIT_TERM_DAYS),
                description=f"Venta #{doc_number}",
                created_by=user,
            )
            Customer.objects.filter(id=customer.id).update(current_debt=F("current_debt") + total)

        if doc_type == Document.SALE and doc_status == Document.PAID:
            document.move_stock(direction=-1)

        return document


class DocumentItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = DocumentItem
        fields = [
            "id",
            "product_id",
            "sku",
            "name",
            "description",
            "quantity",
            "unit",
            "unit_price",
            "discount",
            "discount_percent",
            "tax_rate",
            "subtotal",
            "tax_amount",
            "total",
        ]


class DocumentSerializer(serializers.ModelSerializer):
    """Serializer for document details, with items and customer summary."""

    type = serializers.CharField(source="doc_type", read_only=True)
    items = DocumentItemSerializer(many=True, read_only=True)
    customer = serializers.SerializerMethodField()
    cash_register_id = serializers.UUIDField(read_only=True, allow_null=True)
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = Document
        fields = [
            "id",
            "type",
            "doc_number",
            "doc_prefix",
            "status",
            "customer",
            "cash_register_id",
            "payment_method",
            "subtotal",
            "tax_rate",
            "tax_amount",
            "discount",
            "total",
            "cash_received",
            "cash_change",
            "card_commission_amount",
            "notes",
            "issued_at",
            "due_at",
            "paid_at",
            "created_by_name",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_customer(self, obj):
        if obj.customer is None:
            return None
        return {"id": obj.customer.id, "name": obj.customer.name, "rut": obj.customer.rut}

    def get_created_by_name(self, obj):
        if obj.created_by is None:
            return None
        return obj.created_by.get_full_name() or obj.created_by.email


class DocumentUpdateSerializer(serializers.Serializer):
    """
    Partial update of an editable document.

    A discount change recomputes ``total`` from the stored subtotal and tax;
    items keep their original discount allocation.
    """

    customer_id = serializers.UUIDField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=Document.STATUS_CHOICES, required=False)
    due_at = serializers.DateTimeField(required=False, allow_null=True)
    payment_method = serializers.ChoiceField(
        choices=Document.PAYMENT_METHOD_CHOICES, required=False
    )
    paid_at = serializers.DateTimeField(required=False, allow_null=True)
    discount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), required=False
    )
    cash_received = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, allow_null=True)

    def validate_customer_id(self, value):
        if value is None:
            return value
        tenant = self.context["request"].user.tenant
        if not Customer.objects.filter(id=value, tenant=tenant).exists():
            raise serializers.ValidationError("Cliente no encontrado")
        return value

    def update(self, instance, validated_data):
        for field in ["status", "due_at", "payment_method", "paid_at"]:
            if field in validated_data:
                setattr(instance, field, validated_data[field])
        if "customer_id" in validated_data:
            instance.customer_id = validated_data["customer_id"]
        if "notes" in validated_data:
            instance.notes = validated_data["notes"] or ""

        if "discount" in validated_data:
            instance.discount = validated_data["discount"]
            instance.total = instance.subtotal + instance.tax_amount - instance.discount

        if validated_data.get("cash_received") is not None:
            instance.cash_received = validated_data["cash_received"]
            instance.cash_change = instance.cash_received - instance.total

        instance.save()
        return instance


class TotalsItemSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(
        max_digits=12, decimal_places=3, min_value=Decimal("0.001")
    )
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"))
    discount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0")
    )
    tax_rate = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        default=Decimal("19"),
    )


class TotalsPreviewSerializer(serializers.Serializer):
    """Cart sent by the POS to preview its totals."""

    items = TotalsItemSerializer(many=True)
    discount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), default=Decimal("0")
    )
