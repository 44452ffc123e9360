"""
Booking Command Handlers

These are the use cases for the booking domain.
They orchestrate domain operations within transactions.

Commands:
- CreateBookingCommand: Reserve a property for a stay
- ConfirmBookingCommand: Host approves a pending booking
- UpdateBookingCommand: Change details, dates or status of a booking
- CancelBookingCommand: Cancel a booking and decide the refund
- CheckInBookingCommand: Check in a guest
- CompleteBookingCommand: Complete a booking (check out)
- ExpireBookingCommand: Cancel a pending booking the host never approved
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from django.contrib.auth import get_user_model
from django.utils import timezone

from apps.bookings.conf import engine_setting
from apps.bookings.domain.cancellation import calculate_refund
from apps.bookings.domain.entities import (
    BookingStatus,
    CancellationSource,
    RefundStatus,
    ensure_transition,
)
from apps.bookings.domain.events import (
    BookingCancelled,
    BookingCheckedIn,
    BookingCompleted,
    BookingConfirmed,
    BookingCreated,
    BookingExpired,
    BookingUpdated,
)
from apps.bookings.models import Booking
from apps.bookings.serializers import BookingUpdateSerializer
from apps.bookings.services import check_availability, load_inventory, stay_range, validate_occupancy
from apps.properties.policies import get_policy_terms
from apps.properties.services import AvailabilityStore, get_property, lock_queryset_if_possible
from shared.application.clock import system_clock
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from shared.domain.value_objects import Actor, Money

logger = logging.getLogger(__name__)

# Columns written back by a compare-and-swap save
MUTABLE_FIELDS = (
    'check_in',
    'check_out',
    'adults',
    'children',
    'status',
    'nightly_rate',
    'total_amount',
    'special_requests',
    'notes',
    'host_notes',
    'confirmed_at',
    'checked_in_at',
    'checked_out_at',
    'cancelled_at',
    'cancellation_source',
    'cancellation_reason',
    'cancelled_by_id',
    'refund_amount',
    'refund_status',
)


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """
    Command to create a new booking

    The actor is the guest making the reservation.
    """
    actor: Actor
    property_id: int
    check_in: date
    check_out: date
    adults: int = 1
    children: int = 0
    special_requests: str = ''
    notes: str = ''


@dataclass
class ConfirmBookingCommand:
    """Command for the host to approve a pending booking"""
    actor: Actor
    booking_id: int


@dataclass
class UpdateBookingCommand:
    """
    Command to change a booking

    ``changes`` may hold check_in, check_out, adults, children,
    special_requests, notes, host_notes and status; cancellation_reason is
    accepted only together with status=cancelled.
    """
    actor: Actor
    booking_id: int
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CancelBookingCommand:
    """Command to cancel a booking"""
    actor: Actor
    booking_id: int
    reason: str = ''


@dataclass
class CheckInBookingCommand:
    """Command to check in a guest"""
    actor: Actor
    booking_id: int


@dataclass
class CompleteBookingCommand:
    """Command to complete a booking (check out); actor None means the system sweep"""
    actor: Optional[Actor]
    booking_id: int


@dataclass
class ExpireBookingCommand:
    """Command to expire a pending booking past its approval window"""
    booking_id: int


# ===== Command Handlers =====

class BookingCommandHandler:
    """
    Shared machinery of the booking handlers

    Every transition goes through the methods here so that a status change
    requested through UpdateBookingCommand behaves exactly like the
    dedicated command.
    """

    def __init__(self, clock=system_clock, store: Optional[AvailabilityStore] = None):
        self.clock = clock
        self.store = store or AvailabilityStore(clock)

    def __call__(self, command):
        return self.handle(command)

    # ----- loading and saving -----

    def _load_for_update(self, booking_id: int) -> Booking:
        booking = lock_queryset_if_possible(Booking.objects.filter(pk=booking_id)).first()
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def _save(self, booking: Booking) -> None:
        """
        Write the booking back if nobody changed it since it was loaded

        Raises ConflictError when the version moved underneath us.
        """
        expected = booking.version
        now = timezone.now()
        values = {name: getattr(booking, name) for name in MUTABLE_FIELDS}
        updated = Booking.objects.filter(pk=booking.pk, version=expected).update(
            version=expected + 1,
            updated_at=now,
            **values,
        )
        if updated != 1:
            raise ConflictError(f"Booking {booking.pk} was modified concurrently, please retry")
        booking.version = expected + 1
        booking.updated_at = now

    # ----- authorization -----

    def _ensure_party(self, booking: Booking, actor: Actor) -> None:
        if not (booking.involves(actor) or actor.is_staff):
            raise PermissionDeniedError("Only the guest or the host can manage this booking")

    def _ensure_host(self, booking: Booking, actor: Optional[Actor], action: str) -> None:
        if actor is None:
            return
        if not (booking.is_host(actor) or actor.is_staff):
            raise PermissionDeniedError(f"Only the host can {action} a booking")

    # ----- transitions -----

    def _confirm(self, booking: Booking, uow: DjangoUnitOfWork) -> None:
        ensure_transition(booking.status, BookingStatus.CONFIRMED)
        booking.status = BookingStatus.CONFIRMED.value
        booking.confirmed_at = self.clock.now()
        self.store.reserve(booking.property_id, booking.stay(), booking.pk)
        uow.add_event(BookingConfirmed(
            aggregate_id=booking.pk,
            booking_id=booking.pk,
            property_id=booking.property_id,
            guest_id=booking.guest_id,
            dates=booking.stay(),
        ))

    def _check_in(self, booking: Booking, uow: DjangoUnitOfWork) -> None:
        ensure_transition(booking.status, BookingStatus.CHECKED_IN)
        booking.status = BookingStatus.CHECKED_IN.value
        booking.checked_in_at = self.clock.now()
        uow.add_event(BookingCheckedIn(
            aggregate_id=booking.pk,
            booking_id=booking.pk,
            property_id=booking.property_id,
        ))

    def _complete(self, booking: Booking, uow: DjangoUnitOfWork) -> None:
        ensure_transition(booking.status, BookingStatus.COMPLETED)
        booking.status = BookingStatus.COMPLETED.value
        booking.checked_out_at = self.clock.now()
        uow.add_event(BookingCompleted(
            aggregate_id=booking.pk,
            booking_id=booking.pk,
            property_id=booking.property_id,
        ))

    def _cancel(self, booking: Booking, actor: Actor, reason: str, uow: DjangoUnitOfWork) -> None:
        """
        The single cancellation transition

        The refund is decided here from the property's policy and today's
        date; paying it out happens after commit.
        """
        mode = engine_setting('CHECKED_IN_CANCELLATION')
        previous = booking.current_status()
        ensure_transition(previous, BookingStatus.CANCELLED, checked_in_cancellation=mode)

        if previous == BookingStatus.CHECKED_IN and mode == 'no_refund':
            refund = Money.zero(booking.currency)
        else:
            refund = calculate_refund(
                get_policy_terms(booking.property_id),
                booking.total(),
                self.clock.today(),
                booking.check_in,
            )

        if booking.is_guest(actor):
            source = CancellationSource.GUEST
        elif booking.is_host(actor):
            source = CancellationSource.HOST
        else:
            source = CancellationSource.SYSTEM

        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = self.clock.now()
        booking.cancellation_reason = reason
        booking.cancellation_source = source.value
        booking.cancelled_by_id = actor.user_id
        booking.refund_amount = refund.amount
        booking.refund_status = (
            RefundStatus.PENDING.value if refund.amount > 0 else RefundStatus.NOT_APPLICABLE.value
        )

        self.store.release(booking.property_id, booking.stay(), booking.pk)

        uow.add_event(BookingCancelled(
            aggregate_id=booking.pk,
            booking_id=booking.pk,
            property_id=booking.property_id,
            cancelled_by_id=actor.user_id,
            source=source.value,
            reason=reason,
            refund_amount=refund.amount,
            currency=booking.currency,
        ))
        logger.info(
            f"Booking {booking.pk} cancelled by {source.value} "
            f"({previous.value}), refund {refund}"
        )


class CreateBookingHandler(BookingCommandHandler):
    """
    Handler for CreateBooking command

    Double booking prevention:
    1. Start database transaction (atomic)
    2. Lock the property row (SELECT FOR UPDATE where supported)
    3. Re-run the availability check inside the transaction
    4. Check for overlapping confirmed bookings
    5. Insert the booking
    6. Reserve its nights; the unique reserved-night constraint rejects a
       concurrent insert and rolls everything back
    7. Publish events after commit
    """

    def handle(self, command: CreateBookingCommand) -> Booking:
        logger.info(
            f"Creating booking for property {command.property_id}, "
            f"guest {command.actor.user_id}, dates {command.check_in} - {command.check_out}"
        )

        stay = stay_range(command.check_in, command.check_out)
        validate_occupancy(command.adults, command.children)
        if command.check_in < self.clock.today():
            raise ValidationError("Check-in date cannot be in the past")

        with DjangoUnitOfWork() as uow:
            property_obj = get_property(command.property_id, lock=True)

            if property_obj.is_owned_by(command.actor.user_id):
                raise ValidationError("You cannot book your own property")
            if not get_user_model().objects.filter(pk=command.actor.user_id).exists():
                raise NotFoundError(f"User {command.actor.user_id} not found")

            result = check_availability(
                property_obj.pk,
                command.check_in,
                command.check_out,
                command.adults,
                command.children,
                property_obj=property_obj,
            )
            if not result.is_available:
                raise ValidationError(result.message, details=result.restrictions)

            inventory = load_inventory(property_obj.pk, stay)
            if not inventory.can_allocate(stay):
                raise ConflictError(
                    "Property is already booked for the selected dates",
                    details=[a.booking_id for a in inventory.get_allocations_for_period(stay)],
                )

            instant = result.is_instant_bookable
            now = self.clock.now()
            booking = Booking.objects.create(
                property=property_obj,
                guest_id=command.actor.user_id,
                host_id=property_obj.owner_id,
                confirmation_code=self._new_confirmation_code(),
                check_in=command.check_in,
                check_out=command.check_out,
                adults=command.adults,
                children=command.children,
                nightly_rate=result.average_nightly_rate.amount,
                total_amount=result.total_price.amount,
                currency=result.total_price.currency,
                status=(BookingStatus.CONFIRMED if instant else BookingStatus.PENDING).value,
                confirmed_at=now if instant else None,
                special_requests=command.special_requests,
                notes=command.notes,
            )

            self.store.reserve(property_obj.pk, stay, booking.pk)

            uow.add_event(BookingCreated(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                property_id=property_obj.pk,
                guest_id=command.actor.user_id,
                dates=stay,
                total_amount=booking.total_amount,
                status=booking.status,
            ))

        logger.info(
            f"Booking {booking.pk} ({booking.confirmation_code}) created as {booking.status}, "
            f"total {booking.total_amount} {booking.currency}"
        )
        return booking

    def _new_confirmation_code(self) -> str:
        prefix = engine_setting('CONFIRMATION_CODE_PREFIX')
        for _ in range(5):
            code = Booking.generate_confirmation_code(prefix)
            if not Booking.objects.filter(confirmation_code=code).exists():
                return code
        raise StorageError("Could not generate a unique confirmation code")


class ConfirmBookingHandler(BookingCommandHandler):
    """
    Handler for ConfirmBooking command

    Confirming an already confirmed booking succeeds without changes.
    """

    def handle(self, command: ConfirmBookingCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self._load_for_update(command.booking_id)
            self._ensure_host(booking, command.actor, 'confirm')

            if booking.current_status() == BookingStatus.CONFIRMED:
                logger.info(f"Booking {booking.pk} is already confirmed")
                return booking
            if booking.current_status().is_terminal:
                raise ValidationError(f"Cannot confirm a {booking.status} booking")

            self._confirm(booking, uow)
            self._save(booking)

        logger.info(f"Booking {booking.pk} confirmed by host {command.actor.user_id}")
        return booking


class UpdateBookingHandler(BookingCommandHandler):
    """
    Handler for UpdateBooking command

    Date or occupancy changes are re-checked against availability (ignoring
    the booking's own holds), re-priced and re-reserved in one transaction.
    A status change runs the same transition as the dedicated command.
    """

    DATE_FIELDS = ('check_in', 'check_out', 'adults', 'children')
    TEXT_FIELDS = ('special_requests', 'notes', 'host_notes')
    HOST_ONLY_FIELDS = ('host_notes', 'status')

    def handle(self, command: UpdateBookingCommand) -> Booking:
        serializer = BookingUpdateSerializer(data=command.changes, partial=True)
        if not serializer.is_valid():
            raise ValidationError("Invalid booking update", details=serializer.errors)
        changes = dict(serializer.validated_data)

        with DjangoUnitOfWork() as uow:
            booking = self._load_for_update(command.booking_id)
            self._ensure_party(booking, command.actor)

            if booking.current_status().is_terminal:
                raise ValidationError(f"Cannot update a {booking.status} booking")

            host_only = [name for name in self.HOST_ONLY_FIELDS if name in changes]
            if host_only and not (booking.is_host(command.actor) or command.actor.is_staff):
                raise PermissionDeniedError(f"Only the host can change: {', '.join(host_only)}")

            target = changes.pop('status', None)
            reason = changes.pop('cancellation_reason', None)
            if reason is not None and target != BookingStatus.CANCELLED:
                raise ValidationError("A cancellation reason can only be given when cancelling")
            changed = [name for name in self.TEXT_FIELDS if name in changes]
            for name in changed:
                setattr(booking, name, changes[name])

            if any(name in changes for name in self.DATE_FIELDS):
                if target == BookingStatus.CANCELLED:
                    raise ValidationError("Cannot change the stay of a booking being cancelled")
                if self._change_stay(booking, changes):
                    changed.extend(name for name in self.DATE_FIELDS if name in changes)

            if target is not None and target != booking.current_status():
                self._transition(booking, BookingStatus(target), command.actor, reason or '', uow)

            self._save(booking)
            if changed:
                uow.add_event(BookingUpdated(
                    aggregate_id=booking.pk,
                    booking_id=booking.pk,
                    changed_fields=tuple(changed),
                ))

        logger.info(f"Booking {booking.pk} updated by user {command.actor.user_id}")
        return booking

    def _change_stay(self, booking: Booking, changes: Dict[str, Any]) -> bool:
        check_in = changes.get('check_in', booking.check_in)
        check_out = changes.get('check_out', booking.check_out)
        adults = changes.get('adults', booking.adults)
        children = changes.get('children', booking.children)

        if (check_in, check_out, adults, children) == (
            booking.check_in, booking.check_out, booking.adults, booking.children
        ):
            return False

        new_stay = stay_range(check_in, check_out)
        validate_occupancy(adults, children)
        if check_in != booking.check_in and check_in < self.clock.today():
            raise ValidationError("Check-in date cannot be in the past")

        property_obj = get_property(booking.property_id, lock=True)
        result = check_availability(
            property_obj.pk,
            check_in,
            check_out,
            adults,
            children,
            exclude_booking_id=booking.pk,
            property_obj=property_obj,
        )
        if not result.is_available:
            raise ValidationError(result.message, details=result.restrictions)

        self.store.release(booking.property_id, booking.stay(), booking.pk)
        booking.check_in = check_in
        booking.check_out = check_out
        booking.adults = adults
        booking.children = children
        booking.total_amount = result.total_price.amount
        booking.nightly_rate = result.average_nightly_rate.amount
        self.store.reserve(booking.property_id, new_stay, booking.pk)
        return True

    def _transition(
        self, booking: Booking, target: BookingStatus, actor: Actor, reason: str, uow: DjangoUnitOfWork
    ) -> None:
        if target == BookingStatus.CANCELLED:
            self._cancel(booking, actor, reason, uow)
        elif target == BookingStatus.CONFIRMED:
            self._confirm(booking, uow)
        elif target == BookingStatus.CHECKED_IN:
            self._check_in(booking, uow)
        elif target == BookingStatus.COMPLETED:
            self._complete(booking, uow)
        else:
            ensure_transition(booking.status, target)


class CancelBookingHandler(BookingCommandHandler):
    """
    Handler for CancelBooking command

    The guest or the host may cancel. The refund amount is stored on the
    booking and handed to the payment executor after commit.
    """

    def handle(self, command: CancelBookingCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self._load_for_update(command.booking_id)
            self._ensure_party(booking, command.actor)
            self._cancel(booking, command.actor, command.reason, uow)
            self._save(booking)
        return booking


class CheckInBookingHandler(BookingCommandHandler):
    """Handler for CheckInBooking command"""

    def handle(self, command: CheckInBookingCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self._load_for_update(command.booking_id)
            self._ensure_host(booking, command.actor, 'check in')
            self._check_in(booking, uow)
            self._save(booking)

        logger.info(f"Guest checked in for booking {booking.pk}")
        return booking


class CompleteBookingHandler(BookingCommandHandler):
    """Handler for CompleteBooking command"""

    def handle(self, command: CompleteBookingCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self._load_for_update(command.booking_id)
            self._ensure_host(booking, command.actor, 'complete')
            if command.actor is None and booking.check_out > self.clock.today():
                raise ValidationError("Booking has not reached its check-out date")
            self._complete(booking, uow)
            self._save(booking)

        logger.info(f"Booking {booking.pk} completed")
        return booking


class ExpireBookingHandler(BookingCommandHandler):
    """
    Handler for ExpireBooking command

    Returns None when the booking is no longer pending or still inside its
    approval window.
    """

    def handle(self, command: ExpireBookingCommand) -> Optional[Booking]:
        ttl_hours = engine_setting('PENDING_TTL_HOURS')

        with DjangoUnitOfWork() as uow:
            booking = self._load_for_update(command.booking_id)
            if booking.current_status() != BookingStatus.PENDING:
                return None
            if booking.created_at > self.clock.now() - timedelta(hours=ttl_hours):
                return None

            ensure_transition(booking.status, BookingStatus.CANCELLED)
            booking.status = BookingStatus.CANCELLED.value
            booking.cancelled_at = self.clock.now()
            booking.cancellation_source = CancellationSource.SYSTEM.value
            booking.cancellation_reason = f"Expired: not confirmed within {ttl_hours} hours"
            booking.refund_amount = Decimal('0.00')
            booking.refund_status = RefundStatus.NOT_APPLICABLE.value

            self.store.release(booking.property_id, booking.stay(), booking.pk)
            self._save(booking)
            uow.add_event(BookingExpired(
                aggregate_id=booking.pk,
                booking_id=booking.pk,
                property_id=booking.property_id,
            ))

        logger.info(f"Expired pending booking {booking.pk}")
        return booking
