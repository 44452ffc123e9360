"""
Message bus wiring for the booking domain

Called once from ``BookingsConfig.ready``.
"""

import logging

from shared.application.message_bus import message_bus

logger = logging.getLogger(__name__)


def register_handlers(bus=message_bus):
    from apps.bookings.application import command_handlers as handlers
    from apps.bookings.domain.events import BookingCancelled
    from apps.bookings.payments import execute_refund

    commands = {
        handlers.CreateBookingCommand: handlers.CreateBookingHandler(),
        handlers.ConfirmBookingCommand: handlers.ConfirmBookingHandler(),
        handlers.UpdateBookingCommand: handlers.UpdateBookingHandler(),
        handlers.CancelBookingCommand: handlers.CancelBookingHandler(),
        handlers.CheckInBookingCommand: handlers.CheckInBookingHandler(),
        handlers.CompleteBookingCommand: handlers.CompleteBookingHandler(),
        handlers.ExpireBookingCommand: handlers.ExpireBookingHandler(),
    }
    for command_type, handler in commands.items():
        if not bus.has_command_handler(command_type):
            bus.register_command_handler(command_type, handler)

    bus.register_event_handler(BookingCancelled, execute_refund)
    logger.debug(f"Registered {len(commands)} booking command handlers")
    return bus
