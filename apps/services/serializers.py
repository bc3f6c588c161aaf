"""
Serializers for quotes and service projects.

Resource and expense writes keep the project's ``actual_cost`` in step:
create adds the cost, update applies the difference and delete (in the
view) subtracts it.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Max, Sum
from django.utils import timezone

from rest_framework import serializers

from apps.core.exceptions import DomainError, NotFoundError
from apps.inventory.models import Product
from apps.sales.models import Customer, Document
from apps.sales.serializers import DocumentCreateSerializer, DocumentSerializer

from .models import Project, ProjectExpense, ProjectMilestone, ProjectPayment, ProjectResource

logger = logging.getLogger(__name__)

QUOTE_PREFIX = "COT"

QUOTE_STATUS_CHOICES = [
    (Document.DRAFT, "Draft"),
    (Document.PENDING, "Pending"),
    (Document.APPROVED, "Approved"),
    (Document.CANCELLED, "Cancelled"),
]

NAME_ERRORS = {"min_length": "El nombre debe tener al menos 2 caracteres"}


def _money(**kwargs):
    return serializers.DecimalField(max_digits=14, decimal_places=2, **kwargs)


# Quotes


class QuoteSerializer(DocumentSerializer):
    """Quote detail with the project it was converted to, if any."""

    project = serializers.SerializerMethodField()

    class Meta(DocumentSerializer.Meta):
        fields = DocumentSerializer.Meta.fields + ["project"]
        read_only_fields = fields

    def get_project(self, obj):
        project = getattr(obj, "project", None)
        if project is None:
            return None
        return {"id": str(project.id), "name": project.name, "status": project.status}


class QuoteCreateSerializer(DocumentCreateSerializer):
    """
    Create a quote. Quotes never move stock, open credits or need a cash
    register, so CREDIT and PAID are not accepted.
    """

    status = serializers.ChoiceField(choices=QUOTE_STATUS_CHOICES, default=Document.DRAFT)
    payment_method = serializers.ChoiceField(
        choices=[
            choice for choice in Document.PAYMENT_METHOD_CHOICES if choice[0] != Document.CREDIT
        ],
        default=Document.TRANSFER,
    )

    def validate(self, data):
        data = super().validate(data)
        data["type"] = Document.QUOTE
        data["doc_prefix"] = data.get("doc_prefix") or QUOTE_PREFIX
        return data


class QuoteUpdateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=QUOTE_STATUS_CHOICES, required=False)
    due_at = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, allow_null=True)

    def validate_customer_id(self, value):
        if value is None:
            return value
        tenant = self.context["request"].user.tenant
        if not Customer.objects.filter(id=value, tenant=tenant).exists():
            raise NotFoundError("Cliente no encontrado")
        return value

    def update(self, instance, validated_data):
        if "customer_id" in validated_data:
            instance.customer_id = validated_data["customer_id"]
        for field in ["status", "due_at"]:
            if field in validated_data:
                setattr(instance, field, validated_data[field])
        if "notes" in validated_data:
            instance.notes = validated_data["notes"] or ""
        instance.save()
        return instance


class ConvertQuoteSerializer(serializers.Serializer):
    """
    Turn an APPROVED quote into a project.

    ``budget`` and ``contracted_amount`` are taken from the quote total.
    """

    name = serializers.CharField(min_length=2, max_length=120, required=False)
    description = serializers.CharField(
        max_length=5000, required=False, allow_blank=True, allow_null=True
    )
    start_date = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, allow_null=True)

    @staticmethod
    def default_project_name(quote):
        name = f"Proyecto COT-{quote.doc_number}"
        if quote.customer is not None:
            name = f"{name} - {quote.customer.name}"
        return name

    @transaction.atomic
    def save(self):
        quote = Document.objects.select_for_update().get(id=self.context["quote"].id)
        request = self.context["request"]

        if quote.status != Document.APPROVED:
            raise DomainError("Solo se pueden convertir cotizaciones en estado Aprobada")
        if Project.objects.filter(quote=quote).exists():
            raise DomainError("Esta cotización ya fue convertida a proyecto")

        data = self.validated_data
        description = data.get("description")
        if description is None:
            description = quote.notes
        return Project.objects.create(
            tenant=quote.tenant,
            quote=quote,
            customer=quote.customer,
            name=data.get("name") or self.default_project_name(quote),
            description=description or "",
            status=Project.ACTIVE,
            budget=quote.total,
            contracted_amount=quote.total,
            actual_cost=Decimal("0"),
            start_date=data.get("start_date") or timezone.now(),
            notes=data.get("notes") or "",
            created_by=request.user,
        )


# Projects


class ProjectSerializer(serializers.ModelSerializer):
    """
    Serializer for Project model.

    Writes take ``quote_id`` and ``customer_id``; reads return summaries.
    A project created from a quote inherits its customer.
    """

    name = serializers.CharField(min_length=2, max_length=120, error_messages=NAME_ERRORS)
    description = serializers.CharField(
        max_length=5000, required=False, allow_blank=True, allow_null=True
    )
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, allow_null=True)
    budget = _money(
        min_value=Decimal("0"),
        required=False,
        allow_null=True,
        error_messages={"min_value": "El presupuesto no puede ser negativo"},
    )
    contracted_amount = _money(min_value=Decimal("0"), required=False, allow_null=True)
    actual_cost = _money(min_value=Decimal("0"), required=False)
    quote_id = serializers.UUIDField(required=False, allow_null=True)
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    quote = serializers.SerializerMethodField()
    customer = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            "id",
            "name",
            "description",
            "status",
            "quote_id",
            "quote",
            "customer_id",
            "customer",
            "budget",
            "contracted_amount",
            "actual_cost",
            "start_date",
            "end_date",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {"start_date": {"required": False}, "status": {"required": False}}

    def get_quote(self, obj):
        quote = obj.quote
        if quote is None:
            return None
        return {
            "id": str(quote.id),
            "doc_number": quote.doc_number,
            "status": quote.status,
            "total": quote.total,
        }

    def get_customer(self, obj):
        customer = obj.customer
        if customer is None:
            return None
        return {"id": str(customer.id), "name": customer.name, "company": customer.company}

    def validate_description(self, value):
        return value or ""

    def validate_notes(self, value):
        return value or ""

    def validate_quote_id(self, value):
        if self.instance is not None and value != self.instance.quote_id:
            raise serializers.ValidationError("La cotización asociada no se puede modificar")
        if value is None:
            return value
        tenant = self.context["request"].user.tenant
        if not Document.objects.filter(id=value, tenant=tenant, doc_type=Document.QUOTE).exists():
            raise NotFoundError("La cotización asociada no existe")
        if self.instance is None and Project.objects.filter(quote_id=value).exists():
            raise DomainError("Esta cotización ya fue convertida a proyecto")
        return value

    def validate_customer_id(self, value):
        if value is None:
            return value
        tenant = self.context["request"].user.tenant
        if not Customer.objects.filter(id=value, tenant=tenant).exists():
            raise NotFoundError("Cliente no encontrado")
        return value

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end < start:
            raise serializers.ValidationError(
                {"end_date": "La fecha de término debe ser posterior a la de inicio"}
            )
        return attrs

    def create(self, validated_data):
        request = self.context["request"]
        validated_data.pop("actual_cost", None)
        quote_id = validated_data.get("quote_id")
        if quote_id and not validated_data.get("customer_id"):
            validated_data["customer_id"] = (
                Document.objects.filter(id=quote_id).values_list("customer_id", flat=True).first()
            )
        return Project.objects.create(
            tenant=request.user.tenant,
            created_by=request.user,
            actual_cost=Decimal("0"),
            **validated_data,
        )


class ProjectMilestoneSerializer(serializers.ModelSerializer):
    name = serializers.CharField(
        min_length=2,
        max_length=140,
        error_messages={"min_length": "El nombre del hito debe tener al menos 2 caracteres"},
    )
    description = serializers.CharField(
        max_length=5000, required=False, allow_blank=True, allow_null=True
    )
    estimated_cost = _money(
        min_value=Decimal("0"),
        required=False,
        allow_null=True,
        error_messages={"min_value": "El costo estimado no puede ser negativo"},
    )

    class Meta:
        model = ProjectMilestone
        fields = [
            "id",
            "name",
            "description",
            "due_date",
            "estimated_cost",
            "is_completed",
            "completed_at",
            "position",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "completed_at", "position", "created_at", "updated_at"]

    def validate_description(self, value):
        return value or ""

    @transaction.atomic
    def create(self, validated_data):
        project = self.context["project"]
        last_position = project.milestones.aggregate(last=Max("position"))["last"] or 0
        if validated_data.get("is_completed"):
            validated_data["completed_at"] = timezone.now()
        return ProjectMilestone.objects.create(
            tenant=project.tenant,
            project=project,
            position=last_position + 1,
            created_by=self.context["request"].user,
            **validated_data,
        )

    def update(self, instance, validated_data):
        if "is_completed" in validated_data and validated_data["is_completed"] != instance.is_completed:
            validated_data["completed_at"] = timezone.now() if validated_data["is_completed"] else None
        return super().update(instance, validated_data)


class ProjectChildSerializer(serializers.ModelSerializer):
    """
    Base for records charged to a project (resources and expenses).

    ``milestone_id`` must name a milestone of the project in context.
    """

    milestone_id = serializers.UUIDField(required=False, allow_null=True)

    def validate_milestone_id(self, value):
        if value is None:
            return value
        if not ProjectMilestone.objects.filter(id=value, project=self.context["project"]).exists():
            raise NotFoundError("El hito seleccionado no existe en este proyecto")
        return value

    def validate_notes(self, value):
        return value or ""


class ProjectResourceSerializer(ProjectChildSerializer):
    """
    Serializer for ProjectResource model.

    The consumed quantity is capped at the planned quantity and
    ``total_cost`` is recomputed on every write.
    """

    product_id = serializers.UUIDField(required=False, allow_null=True)
    sku = serializers.CharField(max_length=120, required=False, allow_blank=True, allow_null=True)
    name = serializers.CharField(min_length=2, max_length=180, error_messages=NAME_ERRORS)
    unit = serializers.CharField(min_length=1, max_length=40, required=False)
    quantity = serializers.DecimalField(
        max_digits=12,
        decimal_places=3,
        min_value=Decimal("0.001"),
        error_messages={"min_value": "La cantidad debe ser mayor a 0"},
    )
    consumed_quantity = serializers.DecimalField(
        max_digits=12,
        decimal_places=3,
        min_value=Decimal("0"),
        required=False,
        error_messages={"min_value": "La cantidad consumida no puede ser negativa"},
    )
    unit_cost = _money(
        min_value=Decimal("0"),
        error_messages={"min_value": "El costo unitario no puede ser negativo"},
    )
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = ProjectResource
        fields = [
            "id",
            "milestone_id",
            "product_id",
            "sku",
            "name",
            "unit",
            "quantity",
            "consumed_quantity",
            "unit_cost",
            "total_cost",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "total_cost", "created_at", "updated_at"]

    def validate_product_id(self, value):
        if self.instance is not None and value != self.instance.product_id:
            raise serializers.ValidationError("El producto del recurso no se puede modificar")
        if value is None:
            return value
        tenant = self.context["request"].user.tenant
        if not Product.objects.filter(id=value, tenant=tenant).exists():
            raise NotFoundError("Producto/servicio no encontrado")
        return value

    def validate_sku(self, value):
        return value or ""

    @transaction.atomic
    def create(self, validated_data):
        project = self.context["project"]
        consumed, total_cost = ProjectResource.compute_cost(
            validated_data["quantity"],
            validated_data.pop("consumed_quantity", None),
            validated_data["unit_cost"],
        )
        if validated_data.get("product_id") and not validated_data.get("sku"):
            validated_data["sku"] = (
                Product.objects.filter(id=validated_data["product_id"])
                .values_list("sku", flat=True)
                .first()
                or ""
            )
        resource = ProjectResource.objects.create(
            tenant=project.tenant,
            project=project,
            consumed_quantity=consumed,
            total_cost=total_cost,
            created_by=self.context["request"].user,
            **validated_data,
        )
        project.add_cost(total_cost)
        return resource

    @transaction.atomic
    def update(self, instance, validated_data):
        validated_data.pop("product_id", None)
        previous_total = instance.total_cost
        consumed, total_cost = ProjectResource.compute_cost(
            validated_data.get("quantity", instance.quantity),
            validated_data.get("consumed_quantity", instance.consumed_quantity),
            validated_data.get("unit_cost", instance.unit_cost),
        )
        validated_data["consumed_quantity"] = consumed
        validated_data["total_cost"] = total_cost
        resource = super().update(instance, validated_data)
        instance.project.add_cost(total_cost - previous_total)
        return resource


class ProjectExpenseSerializer(ProjectChildSerializer):
    description = serializers.CharField(
        min_length=2,
        max_length=180,
        error_messages={"min_length": "La descripción debe tener al menos 2 caracteres"},
    )
    category = serializers.CharField(max_length=80, required=False, allow_blank=True, allow_null=True)
    amount = _money(
        min_value=Decimal("0.01"),
        error_messages={"min_value": "El monto debe ser mayor a 0"},
    )
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = ProjectExpense
        fields = [
            "id",
            "milestone_id",
            "description",
            "category",
            "amount",
            "expense_date",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {"expense_date": {"required": False}}

    def validate_category(self, value):
        return value or ""

    @transaction.atomic
    def create(self, validated_data):
        project = self.context["project"]
        expense = ProjectExpense.objects.create(
            tenant=project.tenant,
            project=project,
            created_by=self.context["request"].user,
            **validated_data,
        )
        project.add_cost(expense.amount)
        return expense

    @transaction.atomic
    def update(self, instance, validated_data):
        previous_amount = instance.amount
        expense = super().update(instance, validated_data)
        instance.project.add_cost(expense.amount - previous_amount)
        return expense


class ProjectPaymentSerializer(serializers.ModelSerializer):
    """
    Serializer for ProjectPayment model.

    A payment may not take the collected total above the contracted amount.
    """

    amount = _money(
        min_value=Decimal("0.01"),
        error_messages={"min_value": "El monto debe ser mayor a 0"},
    )
    reference = serializers.CharField(
        max_length=120, required=False, allow_blank=True, allow_null=True
    )
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = ProjectPayment
        fields = ["id", "amount", "payment_method", "paid_at", "reference", "notes", "created_at"]
        read_only_fields = ["id", "created_at"]
        extra_kwargs = {"paid_at": {"required": False}}

    def validate_reference(self, value):
        return value or ""

    def validate_notes(self, value):
        return value or ""

    @transaction.atomic
    def create(self, validated_data):
        project = Project.objects.select_for_update().get(id=self.context["project"].id)
        contracted = project.get_contracted_amount()
        collected = (
            ProjectPayment.objects.filter(project=project).aggregate(total=Sum("amount"))["total"]
            or Decimal("0")
        )
        if contracted is not None and collected + validated_data["amount"] > contracted:
            logger.warning(
                f"Project {project.id} payment rejected: collected {collected}, "
                f"contracted {contracted}, amount {validated_data['amount']}"
            )
            raise DomainError(
                "El cobro supera el monto contratado pendiente",
                details={
                    "contracted_amount": contracted,
                    "already_collected": collected,
                    "pending_amount": max(contracted - collected, Decimal("0")),
                },
            )
        return ProjectPayment.objects.create(
            tenant=project.tenant,
            project=project,
            created_by=self.context["request"].user,
            **validated_data,
        )
