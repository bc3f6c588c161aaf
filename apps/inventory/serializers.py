"""
Serializers for the product catalog.
"""

from rest_framework import serializers

from .models import Category, Product
from .sku import generate_unique_sku


class CategorySerializer(serializers.ModelSerializer):
    """Serializer for Category model."""

    products_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ["id", "name", "description", "products_count", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]

    def get_products_count(self, obj):
        return obj.products.count()

    def validate_name(self, value):
        """Validate name uniqueness within tenant."""
        value = value.strip()
        tenant = self.context["request"].user.tenant
        queryset = Category.objects.filter(tenant=tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Ya existe una categoría con este nombre")
        return value


class ProductSerializer(serializers.ModelSerializer):
    """
    Serializer for reading and writing products.

    A blank SKU on create is replaced by a generated one.
    """

    sku = serializers.CharField(max_length=100, required=False, allow_blank=True)
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), required=False, allow_null=True
    )
    category_name = serializers.CharField(source="category.name", read_only=True, default=None)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "barcode",
            "name",
            "description",
            "product_type",
            "category",
            "category_name",
            "price",
            "cost",
            "tax_rate",
            "track_inventory",
            "current_stock",
            "min_stock",
            "unit",
            "is_active",
            "is_low_stock",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def _tenant(self):
        return self.context["request"].user.tenant

    def validate_sku(self, value):
        """Validate SKU uniqueness within tenant."""
        value = (value or "").strip()
        if not value:
            return value

        queryset = Product.objects.filter(tenant=self._tenant(), sku=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Ya existe un producto con este SKU")
        return value

    def validate_category(self, value):
        if value is not None and value.tenant_id != self._tenant().id:
            raise serializers.ValidationError("Categoría no encontrada")
        return value

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("El nombre es obligatorio")
        return value

    def validate(self, data):
        if self.instance is not None and "sku" in data and not data["sku"]:
            raise serializers.ValidationError({"sku": "El SKU no puede quedar vacío"})
        return data

    def create(self, validated_data):
        if not validated_data.get("sku"):
            validated_data["sku"] = generate_unique_sku(validated_data["tenant"])
        return super().create(validated_data)


class LabelItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    copies = serializers.IntegerField(min_value=1, max_value=500, default=1)


class LabelRequestSerializer(serializers.Serializer):
    """Payload of the label sheet endpoint."""

    items = LabelItemSerializer(many=True)
    show_price = serializers.BooleanField(default=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("Debes seleccionar al menos un producto")
        return value
