"""Serializers for availability days and cancellation policies."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers  # type: ignore

from apps.bookings.domain.cancellation import PolicyType

from .models import AvailabilityDay, CancellationPolicy


class AvailabilityDayFieldsSerializer(serializers.Serializer):
    """Editable attributes of a day-record; used with ``partial=True``."""

    is_available = serializers.BooleanField(required=False)
    price_override = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
        allow_null=True,
    )
    min_stay = serializers.IntegerField(min_value=1, max_value=365, required=False, allow_null=True)
    max_stay = serializers.IntegerField(min_value=1, max_value=365, required=False, allow_null=True)
    is_instant_book = serializers.BooleanField(required=False, allow_null=True)
    blocked_reason = serializers.CharField(max_length=255, required=False, allow_null=True, allow_blank=True)
    check_in_allowed = serializers.BooleanField(required=False, allow_null=True)
    check_out_allowed = serializers.BooleanField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):  # type: ignore
        min_stay = attrs.get("min_stay")
        max_stay = attrs.get("max_stay")
        if min_stay is not None and max_stay is not None and min_stay > max_stay:
            raise serializers.ValidationError("Minimum stay cannot exceed maximum stay.")
        return attrs


class AvailabilityEntrySerializer(AvailabilityDayFieldsSerializer):
    """One entry of a bulk calendar update."""

    date = serializers.DateField()


class AvailabilityDaySerializer(serializers.ModelSerializer):
    property_id = serializers.ReadOnlyField(source="property.id")

    class Meta:
        model = AvailabilityDay
        fields = [
            "id",
            "property_id",
            "date",
            "is_available",
            "price_override",
            "min_stay",
            "max_stay",
            "is_instant_book",
            "blocked_reason",
            "check_in_allowed",
            "check_out_allowed",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CancellationPolicyInputSerializer(serializers.Serializer):
    policy_type = serializers.ChoiceField(choices=PolicyType.choices())
    refund_percentage = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
    )
    days_before_checkin = serializers.IntegerField(min_value=0, max_value=365)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    is_active = serializers.BooleanField(required=False, default=True)


class CancellationPolicySerializer(serializers.ModelSerializer):
    property_id = serializers.ReadOnlyField(source="property.id")
    policy_type_display = serializers.ReadOnlyField(source="get_policy_type_display")

    class Meta:
        model = CancellationPolicy
        fields = [
            "id",
            "property_id",
            "policy_type",
            "policy_type_display",
            "refund_percentage",
            "days_before_checkin",
            "description",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PolicyTemplateSerializer(serializers.Serializer):
    """Read-only view of ``PolicyTerms``."""

    policy_type = serializers.SerializerMethodField()
    display_name = serializers.SerializerMethodField()
    refund_percentage = serializers.DecimalField(max_digits=5, decimal_places=2)
    days_before_checkin = serializers.IntegerField()
    description = serializers.CharField()

    def get_policy_type(self, terms) -> str:
        return terms.policy_type.value

    def get_display_name(self, terms) -> str:
        return terms.policy_type.display_name
