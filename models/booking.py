"""
Booking data access functions.
Handles booking CRUD, status changes, availability checking and the calendar.

This module re-exports the functions of the split modules:
- booking_state.py: Status machine, balance and update guards
- booking_crud.py: Create, read, update, delete and paid-amount recomputation
- booking_availability.py: Accommodation conflict detection
- booking_calendar.py: Per-date occupancy and month overview
"""

# =============================================================================
# RE-EXPORTS
# =============================================================================

# State management
from .booking_state import (
    # Constants
    BOOKING_STATUSES,
    BOOKING_TRANSITIONS,
    # Balance
    calculate_balance,
    is_fully_paid,
    # Transitions
    can_transition,
    get_allowed_transitions,
    validate_status_change,
    validate_booking_update,
)

# CRUD operations
from .booking_crud import (
    # Constants
    BOOKING_SOURCES,
    BOOKING_TYPES,
    # Errors
    BookingIntegrityError,
    # Create
    create_booking,
    # Read
    get_booking_by_id,
    get_booking_by_number,
    get_booking_by_code,
    list_bookings,
    # Update
    update_booking,
    change_booking_status,
    confirm_booking,
    cancel_booking,
    check_in_booking,
    check_out_booking,
    # Delete
    delete_booking,
    # Aggregates
    recalculate_paid_amount,
)

# Availability
from .booking_availability import (
    BLOCKING_STATUSES,
    check_availability,
    format_conflict_messages,
    dates_overlap,
    is_available,
)

# Calendar
from .booking_calendar import (
    get_booking_for_date,
    get_accommodations_for_date,
    get_month_overview,
)


__all__ = [
    # State
    'BOOKING_STATUSES',
    'BOOKING_TRANSITIONS',
    'calculate_balance',
    'is_fully_paid',
    'can_transition',
    'get_allowed_transitions',
    'validate_status_change',
    'validate_booking_update',
    # CRUD
    'BOOKING_SOURCES',
    'BOOKING_TYPES',
    'BookingIntegrityError',
    'create_booking',
    'get_booking_by_id',
    'get_booking_by_number',
    'get_booking_by_code',
    'list_bookings',
    'update_booking',
    'change_booking_status',
    'confirm_booking',
    'cancel_booking',
    'check_in_booking',
    'check_out_booking',
    'delete_booking',
    'recalculate_paid_amount',
    # Availability
    'BLOCKING_STATUSES',
    'check_availability',
    'format_conflict_messages',
    'dates_overlap',
    'is_available',
    # Calendar
    'get_booking_for_date',
    'get_accommodations_for_date',
    'get_month_overview',
]
