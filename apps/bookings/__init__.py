"""Bookings app package.

This app encapsulates the booking lifecycle: the conflict check that
decides bookability and price, the state machine driving a reservation
from request to checkout or cancellation, refund decisions and the
periodic sweeps expiring stale requests. Exclusive use of a night is
enforced inside database transactions with row locks and a unique
reserved-night constraint.
"""
