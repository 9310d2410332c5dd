"""
Booking CRUD operations.
Handles create, read, update, delete and status changes for bookings.

Every write runs inside database.transaction(), so the availability check,
identifier draw and inserts commit or roll back together.
"""

from flask import current_app

from database import get_db, transaction
from utils.datetime_helpers import get_today, get_now, parse_date
from utils.money import ZERO, to_decimal
from utils.validators import (
    FieldErrors, validate_email, validate_phone,
    parse_positive_int, sanitize_input,
)
from .identifiers import generate_booking_number, generate_booking_code
from .pricing import calculate_booking_totals
from .booking_availability import check_availability, format_conflict_messages
from .booking_state import (
    STATUS_PENDING, STATUS_CONFIRMED, STATUS_CHECKED_IN, STATUS_CHECKED_OUT, STATUS_CANCELLED,
    calculate_balance, calculate_down_payment_balance, validate_booking_update,
    validate_status_change,
)


BOOKING_SOURCES = ('guest', 'registered', 'walk_in')
BOOKING_TYPES = ('day_tour', 'overnight')
BOOKING_MONEY_FIELDS = (
    'accommodation_total', 'entrance_fee_total', 'total_amount', 'paid_amount', 'down_payment_paid',
)
LINE_MONEY_FIELDS = ('rate', 'additional_pax_charge', 'subtotal')

# Editable through update_booking; accommodations change through rebookings
UPDATABLE_FIELDS = (
    'guest_name', 'guest_email', 'guest_phone', 'guest_address', 'notes', 'status',
    'check_in_date', 'check_out_date', 'down_payment_required', 'down_payment_amount',
    'cancellation_reason',
)


class BookingIntegrityError(RuntimeError):
    """A stored aggregate could not be recomputed because its booking is missing."""


# =============================================================================
# ROW HELPERS
# =============================================================================

def _booking_from_row(row) -> dict:
    """Convert a bookings row into a dict with Decimal money and derived fields."""
    booking = dict(row)
    for field in BOOKING_MONEY_FIELDS:
        booking[field] = to_decimal(booking[field])
    if booking['down_payment_amount'] is not None:
        booking['down_payment_amount'] = to_decimal(booking['down_payment_amount'])
    booking['down_payment_required'] = bool(booking['down_payment_required'])

    booking['total_guests'] = booking['total_adults'] + booking['total_children']
    booking['balance'] = calculate_balance(booking['total_amount'], booking['paid_amount'])
    booking['is_fully_paid'] = booking['balance'] <= ZERO
    booking['down_payment_balance'] = calculate_down_payment_balance(booking)
    return booking


def _line_from_row(row) -> dict:
    line = dict(row)
    for field in LINE_MONEY_FIELDS:
        if field in line:
            line[field] = to_decimal(line[field])
    return line


def get_booking_lines(booking_id: int) -> list:
    """Accommodation lines of a booking with accommodation names."""
    db = get_db()
    rows = db.execute('''
        SELECT ba.*, a.name as accommodation_name, a.type as accommodation_type
        FROM booking_accommodations ba
        JOIN accommodations a ON a.id = ba.accommodation_id
        WHERE ba.booking_id = ?
        ORDER BY ba.id
    ''', (booking_id,)).fetchall()
    return [_line_from_row(row) for row in rows]


def get_booking_entrance_fees(booking_id: int) -> list:
    db = get_db()
    rows = db.execute('''
        SELECT * FROM booking_entrance_fees WHERE booking_id = ? ORDER BY id
    ''', (booking_id,)).fetchall()
    return [_line_from_row(row) for row in rows]


def write_booking_lines(db, booking_id: int, accommodations: list, entrance_fees: list) -> None:
    """Replace a booking's accommodation and entrance-fee lines."""
    db.execute('DELETE FROM booking_accommodations WHERE booking_id = ?', (booking_id,))
    db.execute('DELETE FROM booking_entrance_fees WHERE booking_id = ?', (booking_id,))

    for line in accommodations:
        db.execute('''
            INSERT INTO booking_accommodations
            (booking_id, accommodation_id, accommodation_rate_id, guests, rate,
             additional_pax_charge, subtotal, free_entrance_used)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', (booking_id, line['accommodation_id'], line['accommodation_rate_id'], line['guests'],
              line['rate'], line['additional_pax_charge'], line['subtotal'],
              line['free_entrance_used']))

    for fee in entrance_fees:
        db.execute('''
            INSERT INTO booking_entrance_fees (booking_id, type, quantity, rate, subtotal)
            VALUES (?, ?, ?, ?, ?)
        ''', (booking_id, fee['type'], fee['quantity'], fee['rate'], fee['subtotal']))


# =============================================================================
# READ
# =============================================================================

def get_booking_by_id(booking_id: int, include_details: bool = True) -> dict:
    """
    Get booking by ID.

    Args:
        booking_id: Booking ID
        include_details: Attach accommodation and entrance-fee lines

    Returns:
        Booking dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM bookings WHERE id = ?', (booking_id,)).fetchone()
    if not row:
        return None

    booking = _booking_from_row(row)
    if include_details:
        booking['accommodations'] = get_booking_lines(booking_id)
        booking['entrance_fees'] = get_booking_entrance_fees(booking_id)
    return booking


def get_booking_by_number(booking_number: str) -> dict:
    """Get booking by its BK number, or None."""
    db = get_db()
    row = db.execute('SELECT id FROM bookings WHERE booking_number = ?', (booking_number,)).fetchone()
    return get_booking_by_id(row['id']) if row else None


def get_booking_by_code(booking_code: str) -> dict:
    """Get booking by the guest-facing code (case-insensitive), or None."""
    if not booking_code:
        return None
    db = get_db()
    row = db.execute('SELECT id FROM bookings WHERE booking_code = ?',
                     (booking_code.strip().upper(),)).fetchone()
    return get_booking_by_id(row['id']) if row else None


def list_bookings(status: str = None, source: str = None, booking_type: str = None,
                  search: str = None, created_by: int = None,
                  date_from=None, date_to=None) -> list:
    """
    List bookings with optional filters, newest first.

    Args:
        status: Filter by status
        source: Filter by source (guest, registered, walk_in)
        booking_type: Filter by day_tour / overnight
        search: Matches booking number, code, guest name or email
        created_by: Only bookings created by this user
        date_from: Stays ending on or after this date
        date_to: Stays starting on or before this date

    Returns:
        List of booking dicts (without line details)
    """
    db = get_db()
    query = 'SELECT * FROM bookings WHERE 1=1'
    params = []

    if status:
        query += ' AND status = ?'
        params.append(status)

    if source:
        query += ' AND source = ?'
        params.append(source)

    if booking_type:
        query += ' AND booking_type = ?'
        params.append(booking_type)

    if created_by:
        query += ' AND created_by = ?'
        params.append(created_by)

    if date_from:
        query += ' AND COALESCE(check_out_date, check_in_date) >= ?'
        params.append(parse_date(date_from))

    if date_to:
        query += ' AND check_in_date <= ?'
        params.append(parse_date(date_to))

    if search:
        like = f'%{search.strip()}%'
        query += '''
            AND (booking_number LIKE ? OR booking_code LIKE ?
                 OR guest_name LIKE ? OR guest_email LIKE ?)
        '''
        params.extend([like, like, like, like])

    query += ' ORDER BY id DESC'

    return [_booking_from_row(row) for row in db.execute(query, params).fetchall()]


# =============================================================================
# INPUT PARSING
# =============================================================================

def parse_date_field(data: dict, field: str, errors: FieldErrors, required: bool = False):
    value = data.get(field)
    if value in (None, ''):
        if required:
            errors.add(field, 'This field is required')
        return None
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        errors.add(field, 'Enter a valid date (YYYY-MM-DD)')
        return None


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _parse_down_payment(data: dict, errors: FieldErrors) -> tuple:
    """Returns (required, amount or None)."""
    required = _parse_bool(data.get('down_payment_required', False))
    amount = data.get('down_payment_amount')
    if amount in (None, ''):
        return required, None
    try:
        return required, to_decimal(amount)
    except ValueError:
        errors.add('down_payment_amount', 'Enter a valid amount')
        return required, None


def _parse_guest_fields(data: dict, errors: FieldErrors, partial: bool = False) -> dict:
    guest = {}

    if not partial or 'guest_name' in data:
        name = sanitize_input(data.get('guest_name'), max_length=255)
        if not name:
            errors.add('guest_name', 'Guest name is required')
        guest['guest_name'] = name

    if not partial or 'guest_email' in data:
        email = sanitize_input(data.get('guest_email'), max_length=255) or None
        if email and not validate_email(email):
            errors.add('guest_email', 'Enter a valid email address')
        guest['guest_email'] = email

    if not partial or 'guest_phone' in data:
        phone = sanitize_input(data.get('guest_phone'), max_length=30) or None
        if phone and not validate_phone(phone):
            errors.add('guest_phone', 'Enter a valid phone number')
        guest['guest_phone'] = phone

    if not partial or 'guest_address' in data:
        guest['guest_address'] = sanitize_input(data.get('guest_address'), max_length=500) or None

    if not partial or 'notes' in data:
        guest['notes'] = sanitize_input(data.get('notes'), max_length=1000) or None

    return guest


def validate_stay_dates(booking_type: str, check_in, check_out, errors: FieldErrors,
                        check_in_field: str = 'check_in_date',
                        check_out_field: str = 'check_out_date'):
    """
    Normalize a stay's check-out and add date-order errors.

    Returns:
        The check-out to store (None for day tours)
    """
    if booking_type == 'overnight':
        if check_in and not check_out and check_out_field not in errors:
            errors.add(check_out_field, 'Check-out date is required for overnight stays')
        elif check_in and check_out and check_out <= check_in:
            errors.add(check_out_field, 'Check-out date must be after check-in date')
        return check_out

    if check_in and check_out and check_out <= check_in:
        errors.add(check_out_field, 'Check-out date must be after check-in date')
    return None


def add_conflict_errors(conflicts: list, errors: FieldErrors, field: str = 'accommodations') -> None:
    for message in format_conflict_messages(conflicts):
        errors.add(field, message)


def parse_cancellation_reason(new_status: str, reason, errors: FieldErrors):
    """Cancellations need a reason; other statuses ignore it."""
    if new_status != STATUS_CANCELLED:
        return None
    reason = sanitize_input(reason, max_length=500) or None
    if not reason:
        errors.add('cancellation_reason', 'Please provide a reason for cancellation.')
    return reason


def cancel_active_rebookings(db, booking_id: int, cancelled_at) -> int:
    """
    Cancel the pending and approved rebookings of a booking being cancelled.

    Returns:
        Number of rebookings cancelled
    """
    cursor = db.execute('''
        UPDATE rebookings SET status = 'cancelled', updated_at = ?
        WHERE original_booking_id = ? AND status IN ('pending', 'approved')
    ''', (cancelled_at, booking_id))
    return cursor.rowcount


# =============================================================================
# CREATE
# =============================================================================

def create_booking(data: dict, created_by: int = None) -> dict:
    """
    Create a booking with priced lines.

    The booking number and code are drawn, availability is checked and the
    rows are inserted in one write transaction.

    Args:
        data: Request data (guest_*, source, booking_type, check_in_date,
            check_out_date, total_adults, total_children, accommodations,
            down_payment_required, down_payment_amount, status, notes)
        created_by: Acting user ID (None for anonymous guest bookings)

    Returns:
        dict: The created booking with lines

    Raises:
        BookingValidationError: With every field problem found
    """
    errors = FieldErrors()
    fields = _parse_guest_fields(data, errors)

    source = data.get('source') or ('registered' if created_by else 'guest')
    if source not in BOOKING_SOURCES:
        errors.add('source', f'Source must be one of: {", ".join(BOOKING_SOURCES)}')

    booking_type = data.get('booking_type')
    if booking_type not in BOOKING_TYPES:
        errors.add('booking_type', 'Booking type must be day_tour or overnight')

    status = data.get('status') or STATUS_PENDING
    if status not in (STATUS_PENDING, STATUS_CONFIRMED):
        errors.add('status', 'New bookings start as pending or confirmed')

    check_in = parse_date_field(data, 'check_in_date', errors, required=True)
    check_out = parse_date_field(data, 'check_out_date', errors)
    if check_in and check_in < get_today():
        errors.add('check_in_date', 'Check-in date cannot be in the past')
    check_out = validate_stay_dates(booking_type, check_in, check_out, errors)

    adults = parse_positive_int(data.get('total_adults'), minimum=1)
    if adults is None:
        errors.add('total_adults', 'At least one adult is required')
    children = parse_positive_int(data.get('total_children', 0) or 0, minimum=0)
    if children is None:
        errors.add('total_children', 'Children must be zero or more')

    down_payment_required, down_payment_amount = _parse_down_payment(data, errors)
    if down_payment_required and down_payment_amount is None and 'down_payment_amount' not in errors:
        errors.add('down_payment_amount', 'Down payment amount is required.')
    if not down_payment_required and down_payment_amount is not None:
        errors.add('down_payment_amount',
                   'Down payment amount cannot be set when no down payment is required.')

    if booking_type not in BOOKING_TYPES or not check_in or adults is None or children is None:
        # Lines cannot be priced without these
        errors.raise_if_any()

    with transaction() as db:
        priced = calculate_booking_totals(
            data.get('accommodations'), booking_type, check_in, check_out,
            adults, children, errors
        )

        if down_payment_amount is not None and down_payment_amount > priced['total_amount']:
            errors.add('down_payment_amount', 'Down payment amount cannot exceed the booking total.')

        accommodation_ids = [line['accommodation_id'] for line in priced['accommodations']]
        add_conflict_errors(check_availability(accommodation_ids, check_in, check_out), errors)
        errors.raise_if_any()

        booking_number = generate_booking_number()
        booking_code = generate_booking_code()
        now = get_now()

        cursor = db.execute('''
            INSERT INTO bookings
            (booking_number, booking_code, source, booking_type, created_by,
             guest_name, guest_email, guest_phone, guest_address,
             check_in_date, check_out_date, total_adults, total_children,
             accommodation_total, entrance_fee_total, total_amount, paid_amount,
             down_payment_required, down_payment_amount, down_payment_paid,
             status, notes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (booking_number, booking_code, source, booking_type, created_by,
              fields['guest_name'], fields['guest_email'], fields['guest_phone'],
              fields['guest_address'], check_in, check_out, adults, children,
              priced['accommodation_total'], priced['entrance_fee_total'],
              priced['total_amount'], ZERO, int(down_payment_required), down_payment_amount,
              ZERO, status, fields['notes'], now, now))
        booking_id = cursor.lastrowid

        write_booking_lines(db, booking_id, priced['accommodations'], priced['entrance_fees'])

    current_app.logger.info(f'Booking {booking_number} created ({booking_type}, {check_in})')
    return get_booking_by_id(booking_id)


# =============================================================================
# UPDATE
# =============================================================================

def update_booking(booking_id: int, data: dict) -> dict:
    """
    Update guest details, notes, dates, down payment or status.

    Date changes re-check availability for the booking's accommodations,
    excluding the booking itself.

    Args:
        booking_id: Booking ID
        data: Fields to change (see UPDATABLE_FIELDS); others are ignored

    Returns:
        Updated booking dict, or None if not found

    Raises:
        BookingValidationError: With every field problem found
    """
    with transaction() as db:
        booking = get_booking_by_id(booking_id)
        if not booking:
            return None

        errors = FieldErrors()
        data = {key: value for key, value in data.items() if key in UPDATABLE_FIELDS}
        updates = _parse_guest_fields(data, errors, partial=True)
        changes = {}

        if 'status' in data:
            changes['status'] = data['status']

        if 'check_in_date' in data:
            changes['check_in_date'] = parse_date_field(data, 'check_in_date', errors, required=True)

        if 'check_out_date' in data:
            changes['check_out_date'] = parse_date_field(data, 'check_out_date', errors)

        if 'down_payment_required' in data:
            changes['down_payment_required'] = _parse_bool(data['down_payment_required'])
        if 'down_payment_amount' in data:
            _, changes['down_payment_amount'] = _parse_down_payment(
                {'down_payment_amount': data['down_payment_amount']}, errors)

        validate_booking_update(booking, changes, errors)

        cancellation_reason = None
        if changes.get('status') and changes['status'] != booking['status']:
            cancellation_reason = parse_cancellation_reason(
                changes['status'], data.get('cancellation_reason'), errors)

        check_in =changes.get('check_in_date') or booking['check_in_date']
        check_out = changes.get('check_out_date', booking['check_out_date'])
        dates_changed = (check_in != booking['check_in_date']
                         or check_out != booking['check_out_date'])

        if dates_changed and 'check_in_date' not in errors and 'check_out_date' not in errors:
            check_out = validate_stay_dates(booking['booking_type'], check_in, check_out, errors)
            if not errors:
                accommodation_ids = [line['accommodation_id'] for line in booking['accommodations']]
                add_conflict_errors(
                    check_availability(accommodation_ids, check_in, check_out,
                                       exclude_booking_id=booking_id),
                    errors
                )

        errors.raise_if_any()

        if dates_changed:
            updates['check_in_date'] = check_in
            updates['check_out_date'] = check_out

        if 'down_payment_required' in changes:
            updates['down_payment_required'] = int(changes['down_payment_required'])
            if not changes['down_payment_required']:
                updates['down_payment_amount'] = None
        if 'down_payment_amount' in changes:
            updates['down_payment_amount'] = changes['down_payment_amount']

        new_status = changes.get('status')
        if new_status and new_status != booking['status']:
            updates['status'] = new_status
            if new_status == STATUS_CANCELLED:
                updates['cancellation_reason'] = cancellation_reason
                updates['cancelled_at'] = get_now()

        if updates:
            updates['updated_at'] = get_now()
            assignments = ', '.join(f'{field} = ?' for field in updates)
            db.execute(f'UPDATE bookings SET {assignments} WHERE id = ?',
                       [*updates.values(), booking_id])
            if updates.get('status') == STATUS_CANCELLED:
                cancel_active_rebookings(db, booking_id, updates['updated_at'])

    if new_status and new_status != booking['status']:
        current_app.logger.info(
            f"Booking {booking['booking_number']} status {booking['status']} -> {new_status}"
        )
    return get_booking_by_id(booking_id)


def change_booking_status(booking_id: int, new_status: str, reason: str = None) -> dict:
    """
    Move a booking through the state machine.

    Args:
        booking_id: Booking ID
        new_status: Target status
        reason: Cancellation reason (required when cancelling)

    Returns:
        Updated booking dict, or None if not found

    Raises:
        BookingValidationError: If the transition is not allowed
    """
    with transaction() as db:
        booking = get_booking_by_id(booking_id, include_details=False)
        if not booking:
            return None

        errors = FieldErrors()

        if booking['status'] == new_status:
            errors.add('status', f'Booking is already {new_status.replace("_", " ")}.')
        else:
            validate_status_change(booking, new_status, errors)

        reason = parse_cancellation_reason(new_status, reason, errors)

        errors.raise_if_any()

        now = get_now()
        if new_status == STATUS_CANCELLED:
            db.execute('''
                UPDATE bookings
                SET status = ?, cancellation_reason = ?, cancelled_at = ?, updated_at = ?
                WHERE id = ?
            ''', (new_status, reason, now, now, booking_id))
            cancel_active_rebookings(db, booking_id, now)
        else:
            db.execute('UPDATE bookings SET status = ?, updated_at = ? WHERE id = ?',
                       (new_status, now, booking_id))

    current_app.logger.info(
        f"Booking {booking['booking_number']} status {booking['status']} -> {new_status}"
    )
    return get_booking_by_id(booking_id)


def confirm_booking(booking_id: int) -> dict:
    return change_booking_status(booking_id, STATUS_CONFIRMED)


def cancel_booking(booking_id: int, reason: str) -> dict:
    return change_booking_status(booking_id, STATUS_CANCELLED, reason)


def check_in_booking(booking_id: int) -> dict:
    return change_booking_status(booking_id, STATUS_CHECKED_IN)


def check_out_booking(booking_id: int) -> dict:
    return change_booking_status(booking_id, STATUS_CHECKED_OUT)


# =============================================================================
# DELETE
# =============================================================================

def delete_booking(booking_id: int) -> bool:
    """
    Delete a booking with its lines, payments, refunds and rebookings.

    Reference image files of its payments and refunds are removed after the
    rows are gone.

    Returns:
        True if deleted, False if not found
    """
    from utils.uploads import delete_reference_image

    with transaction() as db:
        booking = db.execute('SELECT booking_number FROM bookings WHERE id = ?',
                             (booking_id,)).fetchone()
        if not booking:
            return False

        images = [row[0] for row in db.execute('''
            SELECT reference_image FROM payments
            WHERE booking_id = ? AND reference_image IS NOT NULL
            UNION ALL
            SELECT r.reference_image FROM refunds r
            JOIN payments p ON p.id = r.payment_id
            WHERE p.booking_id = ? AND r.reference_image IS NOT NULL
        ''', (booking_id, booking_id)).fetchall()]

        db.execute('DELETE FROM bookings WHERE id = ?', (booking_id,))

    for image in images:
        delete_reference_image(image)

    current_app.logger.info(f"Booking {booking['booking_number']} deleted")
    return True


# =============================================================================
# AGGREGATES
# =============================================================================

def recalculate_paid_amount(booking_id: int) -> dict:
    """
    Recompute a booking's paid_amount and down_payment_paid from its ledger.

    paid_amount is every payment minus every refund made against those
    payments. down_payment_paid counts down payments net of their refunds.

    Returns:
        dict: {'paid_amount': Decimal, 'down_payment_paid': Decimal}

    Raises:
        BookingIntegrityError: If the booking does not exist
    """
    db = get_db()

    exists = db.execute('SELECT 1 FROM bookings WHERE id = ?', (booking_id,)).fetchone()
    if not exists:
        raise BookingIntegrityError(f'Booking {booking_id} not found while recomputing paid amount')

    payments = db.execute('''
        SELECT id, amount, is_down_payment FROM payments WHERE booking_id = ?
    ''', (booking_id,)).fetchall()

    refunded_by_payment = {}
    for row in db.execute('''
        SELECT r.payment_id, r.amount
        FROM refunds r
        JOIN payments p ON p.id = r.payment_id
        WHERE p.booking_id = ?
    ''', (booking_id,)).fetchall():
        refunded_by_payment[row['payment_id']] = (
            refunded_by_payment.get(row['payment_id'], ZERO) + to_decimal(row['amount'])
        )

    paid_amount = ZERO
    down_payment_paid = ZERO
    for payment in payments:
        net = to_decimal(payment['amount']) - refunded_by_payment.get(payment['id'], ZERO)
        paid_amount += net
        if payment['is_down_payment']:
            down_payment_paid += max(ZERO, net)

    db.execute('''
        UPDATE bookings SET paid_amount = ?, down_payment_paid = ?, updated_at = ?
        WHERE id = ?
    ''', (paid_amount, down_payment_paid, get_now(), booking_id))

    return {'paid_amount': paid_amount, 'down_payment_paid': down_payment_paid}
