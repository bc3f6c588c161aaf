"""
Serializers for authentication, self-service onboarding, tenant
administration, tenant settings and team management.
"""

import secrets
import zoneinfo

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.db import transaction

from rest_framework import serializers

from .models import Member, TeamInvitation, Tenant, TenantSettings
from .modules import MODULE_KEYS, get_enabled_modules, normalize_modules
from .subscription import create_tenant_subscription
from .validators import clean_rut, format_rut, validate_rut

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for the authenticated user, with the role in the current tenant.
    """

    role = serializers.SerializerMethodField()
    tenant_name = serializers.CharField(source="tenant.company_name", read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "phone",
            "tenant",
            "tenant_name",
            "role",
            "is_superadmin",
            "is_active",
            "date_joined",
            "last_login",
        ]
        read_only_fields = fields

    def get_role(self, obj):
        return obj.get_role()


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class RegisterSerializer(serializers.Serializer):
    """
    Sign up with name, email and password. The account starts without an
    organization: it creates one or accepts an invitation afterwards.
    """

    name = serializers.CharField(min_length=2, max_length=100)
    email = serializers.EmailField()
    password = serializers.CharField(
        min_length=8, max_length=100, write_only=True, validators=[validate_password]
    )

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Este email ya está registrado")
        return value

    def create(self, validated_data):
        return User.objects.create_user(
            username=validated_data["email"],
            email=validated_data["email"],
            password=validated_data["password"],
            first_name=validated_data["name"],
        )


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def validate_email(self, value):
        return value.lower()


class ResetPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()
    token = serializers.CharField(max_length=255)
    password = serializers.CharField(
        min_length=8, max_length=100, write_only=True, validators=[validate_password]
    )
    confirm_password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs["password"] != attrs["confirm_password"]:
            raise serializers.ValidationError(
                {"confirm_password": "Las contraseñas no coinciden."}
            )
        return attrs


class PasswordChangeSerializer(serializers.Serializer):
    """
    Serializer for password change.
    """

    old_password = serializers.CharField(required=True, write_only=True)
    new_password = serializers.CharField(
        required=True, write_only=True, validators=[validate_password]
    )
    new_password2 = serializers.CharField(required=True, write_only=True)

    def validate(self, attrs):
        if attrs["new_password"] != attrs["new_password2"]:
            raise serializers.ValidationError({"new_password": "Las contraseñas no coinciden."})
        return attrs

    def validate_old_password(self, value):
        user = self.context["request"].user
        if not user.check_password(value):
            raise serializers.ValidationError("La contraseña actual es incorrecta.")
        return value

    def save(self):
        user = self.context["request"].user
        user.set_password(self.validated_data["new_password"])
        user.save()
        return user


# Tenant administration


class TenantSerializer(serializers.ModelSerializer):
    """
    Tenant representation for the superadmin listing, with its owner and member count.
    """

    name = serializers.CharField(source="company_name", read_only=True)
    rut_formatted = serializers.SerializerMethodField()
    modules = serializers.SerializerMethodField()
    owner = serializers.SerializerMethodField()
    members_count = serializers.SerializerMethodField()
    subscription = serializers.SerializerMethodField()

    class Meta:
        model = Tenant
        fields = [
            "id",
            "name",
            "rut",
            "rut_formatted",
            "slug",
            "plan",
            "status",
            "modules",
            "card_commission_percent",
            "owner",
            "members_count",
            "subscription",
            "created_at",
            "updated_at",
            "suspended_at",
        ]
        read_only_fields = fields

    def get_rut_formatted(self, obj):
        return format_rut(obj.rut) if obj.rut else None

    def get_modules(self, obj):
        return get_enabled_modules(obj)

    def get_owner(self, obj):
        membership = (
            obj.members.filter(role=Member.OWNER).select_related("user").order_by("created_at").first()
        )
        if not membership:
            return None
        return {
            "id": membership.user.id,
            "email": membership.user.email,
            "name": membership.user.get_full_name(),
        }

    def get_members_count(self, obj):
        return obj.members.count()

    def get_subscription(self, obj):
        subscription = getattr(obj, "subscription", None)
        if subscription is None:
            return None
        return {
            "plan": subscription.plan,
            "status": subscription.status,
            "current_period_start": subscription.current_period_start,
            "current_period_end": subscription.current_period_end,
            "trial_ends_at": subscription.trial_ends_at,
            "mrr": subscription.mrr,
            "is_founder_partner": subscription.is_founder_partner,
            "discount_percent": subscription.discount_percent,
        }


class TenantCreateSerializer(serializers.Serializer):
    """
    Create a tenant with its owner, membership and initial subscription.
    """

    name = serializers.CharField(min_length=3, max_length=255)
    rut = serializers.CharField(max_length=20)
    owner_email = serializers.EmailField()
    owner_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    plan = serializers.ChoiceField(choices=Tenant.PLAN_CHOICES, default=Tenant.PLAN_BASIC)
    status = serializers.ChoiceField(choices=Tenant.STATUS_CHOICES, default=Tenant.ACTIVE)
    modules = serializers.ListField(
        child=serializers.CharField(), required=False, allow_empty=True
    )
    card_commission_percent = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False
    )

    def validate_rut(self, value):
        cleaned = clean_rut(value)
        if not validate_rut(cleaned):
            raise serializers.ValidationError("RUT inválido")
        if Tenant.objects.filter(rut=cleaned).exists():
            raise serializers.ValidationError("Este RUT ya está registrado")
        return cleaned

    def validate_modules(self, value):
        return normalize_modules(value)

    @transaction.atomic
    def create(self, validated_data):
        """
        Create the tenant.

        1. Create the tenant (slug generated from the name)
        2. Find or create the owner user (random temporary password when new)
        3. Create the OWNER membership and point the owner at the tenant
        4. Build the initial subscription
        """
        modules = validated_data.get("modules")
        tenant = Tenant.objects.create(
            company_name=validated_data["name"],
            rut=validated_data["rut"],
            plan=validated_data["plan"],
            status=validated_data["status"],
            modules=modules if modules is not None else list(MODULE_KEYS),
            card_commission_percent=validated_data.get("card_commission_percent", 0),
        )

        owner_email = validated_data["owner_email"].lower()
        owner = User.objects.filter(email__iexact=owner_email).first()
        self.temporary_password = None
        if owner is None:
            self.temporary_password = secrets.token_urlsafe(9)
            owner = User.objects.create_user(
                username=owner_email,
                email=owner_email,
                password=self.temporary_password,
                first_name=validated_data.get("owner_name", ""),
            )

        Member.objects.update_or_create(
            tenant=tenant, user=owner, defaults={"role": Member.OWNER, "is_active": True}
        )
        owner.tenant = tenant
        owner.save(update_fields=["tenant"])

        create_tenant_subscription(tenant)

        self.owner = owner
        return tenant


class TenantUpdateSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="company_name", min_length=3, max_length=255, required=False)
    modules = serializers.ListField(child=serializers.CharField(), required=False)

    class Meta:
        model = Tenant
        fields = ["name", "plan", "status", "modules", "card_commission_percent"]

    def validate_modules(self, value):
        return normalize_modules(value)

    def update(self, instance, validated_data):
        new_status = validated_data.pop("status", None)
        instance = super().update(instance, validated_data)
        if new_status == Tenant.SUSPENDED and not instance.is_suspended():
            instance.suspend()
        elif new_status and new_status != Tenant.SUSPENDED:
            instance.status = new_status
            instance.suspended_at = None
            instance.save(update_fields=["status", "suspended_at", "updated_at"])
        return instance


# Team


class MemberSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source="user.id", read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)
    name = serializers.CharField(source="user.get_full_name", read_only=True)

    class Meta:
        model = Member
        fields = ["id", "user_id", "email", "name", "role", "is_active", "created_at"]
        read_only_fields = fields


class MemberUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Member.ROLE_CHOICES, required=False)
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Debes indicar role o is_active.")
        return attrs


class TeamInvitationSerializer(serializers.ModelSerializer):
    invited_by_email = serializers.EmailField(source="invited_by.email", read_only=True, default=None)

    class Meta:
        model = TeamInvitation
        fields = [
            "id",
            "email",
            "role",
            "status",
            "invited_by_email",
            "expires_at",
            "accepted_at",
            "created_at",
        ]
        read_only_fields = fields


class InvitationCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    role = serializers.ChoiceField(
        choices=[(Member.ADMIN, "Administrator"), (Member.MEMBER, "Member")], default=Member.MEMBER
    )

    def validate_email(self, value):
        return value.lower()


class InvitationAcceptSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=64)


# Self-service organizations and settings


class OrganizationCreateSerializer(serializers.Serializer):
    """
    Create an organization owned by the requesting user.
    """

    name = serializers.CharField(min_length=2, max_length=100)
    rut = serializers.CharField(max_length=20)
    logo_url = serializers.URLField(required=False, allow_blank=True)

    def validate_rut(self, value):
        cleaned = clean_rut(value)
        if not validate_rut(cleaned):
            raise serializers.ValidationError("RUT inválido. Verifique el dígito verificador")
        if Tenant.objects.filter(rut=cleaned).exists():
            raise serializers.ValidationError("Este RUT ya está registrado")
        return cleaned

    @transaction.atomic
    def create(self, validated_data):
        user = self.context["request"].user
        tenant = Tenant.objects.create(
            company_name=validated_data["name"], rut=validated_data["rut"]
        )
        TenantSettings.objects.create(
            tenant=tenant,
            business_name=tenant.company_name,
            rut=tenant.rut,
            logo_url=validated_data.get("logo_url", ""),
        )
        Member.objects.create(tenant=tenant, user=user, role=Member.OWNER)
        user.tenant = tenant
        user.save(update_fields=["tenant"])
        create_tenant_subscription(tenant)
        return tenant


class MembershipOrganizationSerializer(serializers.ModelSerializer):
    """An organization the user belongs to, seen through the membership."""

    id = serializers.UUIDField(source="tenant.id", read_only=True)
    name = serializers.CharField(source="tenant.company_name", read_only=True)
    slug = serializers.CharField(source="tenant.slug", read_only=True)
    rut_formatted = serializers.SerializerMethodField()
    status = serializers.CharField(source="tenant.status", read_only=True)
    is_current = serializers.SerializerMethodField()

    class Meta:
        model = Member
        fields = ["id", "name", "slug", "rut_formatted", "status", "role", "is_active", "is_current"]
        read_only_fields = fields

    def get_rut_formatted(self, obj):
        return format_rut(obj.tenant.rut) if obj.tenant.rut else None

    def get_is_current(self, obj):
        return obj.tenant_id == obj.user.tenant_id


class TenantSettingsSerializer(serializers.ModelSerializer):
    rut_formatted = serializers.SerializerMethodField()

    class Meta:
        model = TenantSettings
        fields = [
            "id",
            "business_name",
            "trade_name",
            "rut",
            "rut_formatted",
            "logo_url",
            "address",
            "city",
            "region",
            "country",
            "phone",
            "email",
            "website",
            "tax_regime",
            "economic_activity",
            "timezone",
            "currency",
            "locale",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "rut_formatted", "created_at", "updated_at"]
        extra_kwargs = {"business_name": {"allow_blank": False}}

    def get_rut_formatted(self, obj):
        return format_rut(obj.rut) if obj.rut else None

    def validate_rut(self, value):
        if not value:
            return ""
        cleaned = clean_rut(value)
        if not validate_rut(cleaned):
            raise serializers.ValidationError("RUT inválido")
        return cleaned

    def validate_timezone(self, value):
        if value not in zoneinfo.available_timezones():
            raise serializers.ValidationError("Zona horaria inválida")
        return value
