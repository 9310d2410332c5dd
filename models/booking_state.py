"""
Booking status state machine and update guards.

    pending -> confirmed -> checked_in -> checked_out
    pending | confirmed -> cancelled

checked_out and cancelled are terminal. Guards are collected into a
FieldErrors mapping so a caller can report every problem at once.
"""

from decimal import Decimal

from utils.money import ZERO, to_decimal
from utils.validators import FieldErrors


# =============================================================================
# CONSTANTS
# =============================================================================

STATUS_PENDING = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_CHECKED_IN = 'checked_in'
STATUS_CHECKED_OUT = 'checked_out'
STATUS_CANCELLED = 'cancelled'

BOOKING_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_CHECKED_IN,
    STATUS_CHECKED_OUT,
    STATUS_CANCELLED,
)

BOOKING_TRANSITIONS = {
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_CHECKED_IN, STATUS_CANCELLED},
    STATUS_CHECKED_IN: {STATUS_CHECKED_OUT},
    STATUS_CHECKED_OUT: set(),
    STATUS_CANCELLED: set(),
}

TERMINAL_STATUSES = (STATUS_CHECKED_OUT, STATUS_CANCELLED)

# Check-in date can no longer move once the guest has arrived
LOCKED_CHECK_IN_STATUSES = (STATUS_CHECKED_IN, STATUS_CHECKED_OUT)


# =============================================================================
# BALANCE
# =============================================================================

def calculate_balance(total_amount, paid_amount) -> Decimal:
    """Outstanding balance; negative when the guest has overpaid."""
    return to_decimal(total_amount) - to_decimal(paid_amount)


def is_fully_paid(total_amount, paid_amount) -> bool:
    return calculate_balance(total_amount, paid_amount) <= ZERO


def calculate_down_payment_balance(booking: dict) -> Decimal:
    """Down payment still owed, zero when none is required."""
    if not booking.get('down_payment_required') or booking.get('down_payment_amount') is None:
        return ZERO
    owed = to_decimal(booking['down_payment_amount']) - to_decimal(booking.get('down_payment_paid'))
    return max(ZERO, owed)


# =============================================================================
# TRANSITIONS
# =============================================================================

def can_transition(current_status: str, new_status: str) -> bool:
    """True when the state machine allows current -> new. Same status is a no-op."""
    if current_status == new_status:
        return True
    return new_status in BOOKING_TRANSITIONS.get(current_status, set())


def get_allowed_transitions(current_status: str) -> list:
    """Statuses reachable from the current one, in lifecycle order."""
    allowed = BOOKING_TRANSITIONS.get(current_status, set())
    return [status for status in BOOKING_STATUSES if status in allowed]


def validate_status_change(booking: dict, new_status: str, errors: FieldErrors) -> None:
    """
    Add a 'status' error when a booking may not move to new_status.

    Args:
        booking: Current booking dict (status, total_amount, paid_amount)
        new_status: Requested status
        errors: Collector to add messages to
    """
    current = booking['status']

    if new_status not in BOOKING_STATUSES:
        errors.add('status', f'Unknown status: {new_status}')
        return

    if new_status == current:
        return

    if current == STATUS_CANCELLED:
        errors.add('status', 'A cancelled booking cannot be reactivated. Create a new booking instead.')
        return

    if current == STATUS_CHECKED_OUT:
        errors.add('status', 'A checked-out booking cannot change status.')
        return

    if new_status == STATUS_CANCELLED and is_fully_paid(booking['total_amount'], booking['paid_amount']):
        errors.add('status', 'A fully paid booking cannot be cancelled. Process a refund first.')
        return

    if not can_transition(current, new_status):
        errors.add('status', f'Cannot change status from {current} to {new_status}.')


def validate_booking_update(booking: dict, changes: dict, errors: FieldErrors = None) -> FieldErrors:
    """
    Check the status, check-in and down-payment guards for an update.

    Args:
        booking: Current booking dict
        changes: Parsed new values; only keys present are checked
            (status, check_in_date, down_payment_required, down_payment_amount)
        errors: Existing collector to extend (a new one when omitted)

    Returns:
        FieldErrors: The collector, empty when the update is allowed
    """
    errors = errors if errors is not None else FieldErrors()

    if 'status' in changes:
        validate_status_change(booking, changes['status'], errors)

    if ('check_in_date' in changes
            and booking['status'] in LOCKED_CHECK_IN_STATUSES
            and changes['check_in_date'] != booking['check_in_date']):
        errors.add('check_in_date', 'Check-in date cannot be changed after the guest has checked in.')

    if 'down_payment_required' in changes or 'down_payment_amount' in changes:
        _validate_down_payment(booking, changes, errors)

    return errors


def _validate_down_payment(booking: dict, changes: dict, errors: FieldErrors) -> None:
    required = bool(changes.get('down_payment_required', booking['down_payment_required']))

    if 'down_payment_amount' in changes:
        amount = changes['down_payment_amount']
    elif 'down_payment_required' in changes and not required:
        # Turning the requirement off clears the amount
        amount = None
    else:
        amount = booking['down_payment_amount']

    if not required:
        if amount is not None:
            errors.add('down_payment_amount',
                       'Down payment amount cannot be set when no down payment is required.')
        return

    if amount is None:
        errors.add('down_payment_amount', 'Down payment amount is required.')
        return

    amount = to_decimal(amount)
    already_paid = to_decimal(booking.get('down_payment_paid'))

    if amount <= ZERO:
        errors.add('down_payment_amount', 'Down payment amount must be greater than zero.')
    elif amount < already_paid:
        errors.add('down_payment_amount',
                   f'Down payment amount cannot be less than the {already_paid:.2f} already paid.')
    elif amount > to_decimal(booking['total_amount']):
        errors.add('down_payment_amount', 'Down payment amount cannot exceed the booking total.')
