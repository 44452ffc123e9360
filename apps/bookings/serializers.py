"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.bookings.domain.entities import BookingStatus

from .models import Booking, BookingGuest


class BookingUpdateSerializer(serializers.Serializer):
    """Changes accepted by a booking update; used with ``partial=True``."""

    check_in = serializers.DateField(required=False)
    check_out = serializers.DateField(required=False)
    adults = serializers.IntegerField(min_value=1, max_value=50, required=False)
    children = serializers.IntegerField(min_value=0, max_value=50, required=False)
    special_requests = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    host_notes = serializers.CharField(required=False, allow_blank=True)
    cancellation_reason = serializers.CharField(max_length=500, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=BookingStatus.choices(), required=False)

    def validate(self, attrs):  # type: ignore
        unknown = set(self.initial_data) - set(self.fields)
        if unknown:
            raise serializers.ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}"
            )
        check_in = attrs.get("check_in")
        check_out = attrs.get("check_out")
        if check_in and check_out and check_in >= check_out:
            raise serializers.ValidationError("Check-out date must be after check-in date.")
        return attrs


class BookingSerializer(serializers.ModelSerializer):
    """Detailed representation of a booking."""

    guest_id = serializers.ReadOnlyField(source="guest.id")
    host_id = serializers.ReadOnlyField(source="host.id")
    property_id = serializers.ReadOnlyField(source="property.id")
    status_display = serializers.ReadOnlyField(source="get_status_display")
    nights = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "confirmation_code",
            "property_id",
            "guest_id",
            "host_id",
            "check_in",
            "check_out",
            "nights",
            "adults",
            "children",
            "status",
            "status_display",
            "nightly_rate",
            "total_amount",
            "currency",
            "special_requests",
            "notes",
            "host_notes",
            "confirmed_at",
            "checked_in_at",
            "checked_out_at",
            "cancelled_at",
            "cancellation_source",
            "cancellation_reason",
            "refund_amount",
            "refund_status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_nights(self, obj: Booking) -> int:
        return obj.nights()


class AvailabilityResultSerializer(serializers.Serializer):
    """Representation of a conflict check result."""

    property_id = serializers.IntegerField()
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    adults = serializers.IntegerField()
    children = serializers.IntegerField()
    total_nights = serializers.IntegerField()
    is_available = serializers.BooleanField()
    is_instant_bookable = serializers.BooleanField()
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2, source="total_price.amount")
    average_nightly_rate = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        source="average_nightly_rate.amount",
    )
    currency = serializers.CharField(source="total_price.currency")
    unavailable_dates = serializers.ListField(child=serializers.DateField())
    restrictions = serializers.ListField(child=serializers.CharField())
    min_stay_required = serializers.IntegerField(allow_null=True)
    max_stay_allowed = serializers.IntegerField(allow_null=True)
    message = serializers.CharField()


class PropertyStatisticsSerializer(serializers.Serializer):
    property_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    total_bookings = serializers.IntegerField()
    bookings_by_status = serializers.DictField(child=serializers.IntegerField())
    total_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    average_booking_value = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()


class BookingGuestInputSerializer(serializers.Serializer):
    """Roster entry payload; used with ``partial=True`` for updates."""

    full_name = serializers.CharField(max_length=100)
    email = serializers.EmailField(max_length=100)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    age = serializers.IntegerField(min_value=0, max_value=120, required=False, allow_null=True)
    is_primary = serializers.BooleanField(required=False, default=False)
    special_requests = serializers.CharField(max_length=500, required=False, allow_blank=True)
    dietary_restrictions = serializers.CharField(max_length=300, required=False, allow_blank=True)
    emergency_contact_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    emergency_contact_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)


class BookingGuestSerializer(serializers.ModelSerializer):
    booking_id = serializers.ReadOnlyField(source="booking.id")

    class Meta:
        model = BookingGuest
        fields = [
            "id",
            "booking_id",
            "full_name",
            "email",
            "phone",
            "age",
            "is_primary",
            "special_requests",
            "dietary_restrictions",
            "emergency_contact_name",
            "emergency_contact_phone",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
