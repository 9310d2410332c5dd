"""
Rebooking workflow.

A rebooking proposes new dates, party size and accommodations for an
existing booking:

    pending -> approved -> completed
    pending | approved -> cancelled

Approval fixes the fee and the total adjustment. Payments and refunds
linked to the rebooking settle the adjustment; completion copies the new
stay onto the original booking once it is settled.
"""

from flask import current_app

from database import get_db, transaction
from utils.datetime_helpers import get_today, get_now
from utils.money import ZERO, money_sum, to_decimal
from utils.validators import FieldErrors, parse_positive_int, sanitize_input
from .identifiers import generate_rebooking_number
from .pricing import calculate_booking_totals
from .booking_availability import check_availability
from .booking_state import STATUS_PENDING as BOOKING_PENDING, STATUS_CONFIRMED as BOOKING_CONFIRMED
from .booking_crud import (
    get_booking_by_id, write_booking_lines, recalculate_paid_amount, validate_stay_dates,
    add_conflict_errors, parse_date_field,
)
from .rebooking_finance import (
    calculate_amount_difference, calculate_total_adjustment, calculate_rebooking_financials,
    derive_payment_status,
)


# =============================================================================
# CONSTANTS
# =============================================================================

STATUS_PENDING = 'pending'
STATUS_APPROVED = 'approved'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'

REBOOKING_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_COMPLETED, STATUS_CANCELLED)
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_APPROVED)

REBOOKING_TRANSITIONS = {
    STATUS_PENDING: {STATUS_APPROVED, STATUS_CANCELLED},
    STATUS_APPROVED: {STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
}

REBOOKING_MONEY_FIELDS = (
    'original_amount', 'new_amount', 'amount_difference', 'rebooking_fee', 'total_adjustment',
)


class InvalidStateTransitionError(ValueError):
    """A rebooking action was requested from a status that does not allow it."""

    def __init__(self, current_status: str, action: str):
        self.current_status = current_status
        self.action = action
        super().__init__(f'Cannot {action} a rebooking that is {current_status}')


def _require_transition(rebooking: dict, new_status: str, action: str) -> None:
    if new_status not in REBOOKING_TRANSITIONS.get(rebooking['status'], set()):
        raise InvalidStateTransitionError(rebooking['status'], action)


def _require_rebookable_booking(rebooking: dict, errors: FieldErrors) -> None:
    """Approval and completion need the original booking still pending or confirmed."""
    booking = get_booking_by_id(rebooking['original_booking_id'], include_details=False)
    if booking['status'] not in (BOOKING_PENDING, BOOKING_CONFIRMED):
        status = booking['status'].replace('_', ' ')
        errors.add('booking', f'The original booking is {status} and can no longer be rebooked')


# =============================================================================
# ROW HELPERS
# =============================================================================

def _rebooking_from_row(row) -> dict:
    rebooking = dict(row)
    for field in REBOOKING_MONEY_FIELDS:
        rebooking[field] = to_decimal(rebooking[field])
    rebooking['new_total_guests'] = rebooking['new_total_adults'] + rebooking['new_total_children']
    return rebooking


def get_rebooking_ledger_totals(rebooking_id: int) -> tuple:
    """
    Payments and refunds that settle a rebooking.

    total_refunded counts refunds linked to the rebooking directly and
    refunds made against one of its payments, each refund once.

    Returns:
        tuple: (total_paid, total_refunded) as Decimal
    """
    db = get_db()

    total_paid = ZERO
    for row in db.execute('SELECT amount FROM payments WHERE rebooking_id = ?',
                          (rebooking_id,)).fetchall():
        total_paid += to_decimal(row['amount'])

    total_refunded = ZERO
    for row in db.execute('''
        SELECT amount FROM refunds
        WHERE rebooking_id = ?
           OR payment_id IN (SELECT id FROM payments WHERE rebooking_id = ?)
    ''', (rebooking_id, rebooking_id)).fetchall():
        total_refunded += to_decimal(row['amount'])

    return total_paid, total_refunded


def _attach_financials(rebooking: dict) -> dict:
    total_paid, total_refunded = get_rebooking_ledger_totals(rebooking['id'])
    financials = calculate_rebooking_financials(
        rebooking['original_amount'], rebooking['new_amount'], rebooking['rebooking_fee'],
        total_paid, total_refunded,
    )
    financials.pop('payment_status')
    rebooking.update(financials)
    return rebooking


def refresh_rebooking_payment_status(rebooking_id: int) -> str:
    """
    Recompute and store a rebooking's payment_status from its ledger.

    Returns:
        The new payment status, or None if the rebooking no longer exists
    """
    db = get_db()
    row = db.execute('SELECT total_adjustment FROM rebookings WHERE id = ?',
                     (rebooking_id,)).fetchone()
    if not row:
        return None

    total_paid, total_refunded = get_rebooking_ledger_totals(rebooking_id)
    status = derive_payment_status(row['total_adjustment'], total_paid, total_refunded)
    db.execute('UPDATE rebookings SET payment_status = ?, updated_at = ? WHERE id = ?',
               (status, get_now(), rebooking_id))
    return status


def _get_lines(table: str, rebooking_id: int) -> list:
    db = get_db()
    if table == 'rebooking_accommodations':
        rows = db.execute('''
            SELECT ra.*, a.name as accommodation_name
            FROM rebooking_accommodations ra
            JOIN accommodations a ON a.id = ra.accommodation_id
            WHERE ra.rebooking_id = ?
            ORDER BY ra.id
        ''', (rebooking_id,)).fetchall()
    else:
        rows = db.execute('SELECT * FROM rebooking_entrance_fees WHERE rebooking_id = ? ORDER BY id',
                          (rebooking_id,)).fetchall()

    lines = []
    for row in rows:
        line = dict(row)
        for field in ('rate', 'additional_pax_charge', 'subtotal'):
            if field in line:
                line[field] = to_decimal(line[field])
        lines.append(line)
    return lines


def _write_lines(db, rebooking_id: int, accommodations: list, entrance_fees: list) -> None:
    db.execute('DELETE FROM rebooking_accommodations WHERE rebooking_id = ?', (rebooking_id,))
    db.execute('DELETE FROM rebooking_entrance_fees WHERE rebooking_id = ?', (rebooking_id,))

    for line in accommodations:
        db.execute('''
            INSERT INTO rebooking_accommodations
            (rebooking_id, accommodation_id, accommodation_rate_id, guests, rate,
             additional_pax_charge, subtotal, free_entrance_used)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', (rebooking_id, line['accommodation_id'], line['accommodation_rate_id'], line['guests'],
              line['rate'], line['additional_pax_charge'], line['subtotal'],
              line['free_entrance_used']))

    for fee in entrance_fees:
        db.execute('''
            INSERT INTO rebooking_entrance_fees (rebooking_id, type, quantity, rate, subtotal)
            VALUES (?, ?, ?, ?, ?)
        ''', (rebooking_id, fee['type'], fee['quantity'], fee['rate'], fee['subtotal']))


# =============================================================================
# READ
# =============================================================================

def get_rebooking_by_id(rebooking_id: int, include_details: bool = True) -> dict:
    """
    Get rebooking by ID with its derived financials.

    Args:
        rebooking_id: Rebooking ID
        include_details: Attach lines and the original booking summary

    Returns:
        Rebooking dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM rebookings WHERE id = ?', (rebooking_id,)).fetchone()
    if not row:
        return None

    rebooking = _attach_financials(_rebooking_from_row(row))

    if include_details:
        rebooking['accommodations'] = _get_lines('rebooking_accommodations', rebooking_id)
        rebooking['entrance_fees'] = _get_lines('rebooking_entrance_fees', rebooking_id)
        original = db.execute('''
            SELECT booking_number, guest_name, booking_type, check_in_date, check_out_date,
                   total_adults, total_children, status
            FROM bookings WHERE id = ?
        ''', (rebooking['original_booking_id'],)).fetchone()
        rebooking['original_booking'] = dict(original) if original else None

    return rebooking


def list_rebookings(booking_id: int = None, status: str = None) -> list:
    """
    List rebookings, newest first.

    Args:
        booking_id: Only rebookings of this booking
        status: Filter by rebooking status

    Returns:
        List of rebooking dicts with financials (no line details)
    """
    db = get_db()
    query = '''
        SELECT r.*, b.booking_number, b.guest_name
        FROM rebookings r
        JOIN bookings b ON b.id = r.original_booking_id
        WHERE 1=1
    '''
    params = []

    if booking_id:
        query += ' AND r.original_booking_id = ?'
        params.append(booking_id)

    if status:
        query += ' AND r.status = ?'
        params.append(status)

    query += ' ORDER BY r.created_at DESC, r.id DESC'

    return [_attach_financials(_rebooking_from_row(row))
            for row in db.execute(query, params).fetchall()]


def get_active_rebooking(booking_id: int) -> dict:
    """The booking's pending or approved rebooking, or None."""
    db = get_db()
    row = db.execute(f'''
        SELECT id FROM rebookings
        WHERE original_booking_id = ? AND status IN ({','.join('?' * len(ACTIVE_STATUSES))})
        ORDER BY created_at DESC, id DESC
        LIMIT 1
    ''', (booking_id, *ACTIVE_STATUSES)).fetchone()
    return get_rebooking_by_id(row['id'], include_details=False) if row else None


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def _price_request(booking: dict, data: dict, errors: FieldErrors):
    """
    Validate and price a rebooking request against its original booking.

    Returns:
        tuple: (new_check_in, new_check_out, adults, children, priced)

    Raises:
        BookingValidationError: With every field problem found
    """
    today = get_today()

    check_in = parse_date_field(data, 'new_check_in_date', errors, required=True)
    check_out = parse_date_field(data, 'new_check_out_date', errors)
    if check_in and check_in <= today:
        errors.add('new_check_in_date', 'New check-in date must be in the future')
    check_out = validate_stay_dates(booking['booking_type'], check_in, check_out, errors,
                                    'new_check_in_date', 'new_check_out_date')

    adults = parse_positive_int(data.get('new_total_adults'), minimum=1)
    if adults is None:
        errors.add('new_total_adults', 'At least one adult is required')
    children = parse_positive_int(data.get('new_total_children', 0) or 0, minimum=0)
    if children is None:
        errors.add('new_total_children', 'Children must be zero or more')

    if not check_in or adults is None or children is None:
        errors.raise_if_any()

    priced = calculate_booking_totals(
        data.get('accommodations'), booking['booking_type'], check_in, check_out,
        adults, children, errors
    )

    accommodation_ids = [line['accommodation_id'] for line in priced['accommodations']]
    add_conflict_errors(
        check_availability(accommodation_ids, check_in, check_out,
                           exclude_booking_id=booking['id']),
        errors
    )
    errors.raise_if_any()

    return check_in, check_out, adults, children, priced


def create_rebooking(booking_id: int, data: dict, processed_by: int = None) -> dict:
    """
    Request new dates, party size and accommodations for a booking.

    Args:
        booking_id: Original booking ID
        data: new_check_in_date, new_check_out_date, new_total_adults,
            new_total_children, accommodations, reason
        processed_by: Acting user ID

    Returns:
        The created rebooking dict, or None if the booking does not exist

    Raises:
        BookingValidationError: With every field problem found
    """
    with transaction() as db:
        booking = get_booking_by_id(booking_id, include_details=False)
        if not booking:
            return None

        errors = FieldErrors()
        if booking['status'] not in (BOOKING_PENDING, BOOKING_CONFIRMED):
            errors.add('booking', 'Only pending or confirmed bookings can be rebooked')
        if booking['check_in_date'] <= get_today():
            errors.add('booking', 'Bookings can only be rebooked before their check-in date')
        if get_active_rebooking(booking_id):
            errors.add('booking', 'This booking already has a pending or approved rebooking')

        check_in, check_out, adults, children, priced = _price_request(booking, data, errors)

        original_amount = booking['total_amount']
        new_amount = priced['total_amount']
        amount_difference = calculate_amount_difference(original_amount, new_amount)
        rebooking_number = generate_rebooking_number()
        now = get_now()

        cursor = db.execute('''
            INSERT INTO rebookings
            (original_booking_id, rebooking_number, processed_by,
             new_check_in_date, new_check_out_date, new_total_adults, new_total_children,
             original_amount, new_amount, amount_difference, rebooking_fee, total_adjustment,
             status, payment_status, reason, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (booking_id, rebooking_number, processed_by, check_in, check_out, adults, children,
              original_amount, new_amount, amount_difference, ZERO, amount_difference,
              STATUS_PENDING, 'pending', sanitize_input(data.get('reason'), 1000) or None,
              now, now))
        rebooking_id = cursor.lastrowid

        _write_lines(db, rebooking_id, priced['accommodations'], priced['entrance_fees'])

    current_app.logger.info(
        f"Rebooking {rebooking_number} requested for {booking['booking_number']} "
        f"(difference {amount_difference:.2f})"
    )
    return get_rebooking_by_id(rebooking_id)


def update_rebooking(rebooking_id: int, data: dict) -> dict:
    """
    Re-price a pending rebooking with new request data, keeping its fee.

    Returns:
        Updated rebooking dict, or None if not found

    Raises:
        InvalidStateTransitionError: If the rebooking is not pending
        BookingValidationError: With every field problem found
    """
    with transaction() as db:
        rebooking = get_rebooking_by_id(rebooking_id, include_details=False)
        if not rebooking:
            return None
        if rebooking['status'] != STATUS_PENDING:
            raise InvalidStateTransitionError(rebooking['status'], 'edit')

        booking = get_booking_by_id(rebooking['original_booking_id'], include_details=False)
        errors = FieldErrors()
        check_in, check_out, adults, children, priced = _price_request(booking, data, errors)

        new_amount = priced['total_amount']
        amount_difference = calculate_amount_difference(rebooking['original_amount'], new_amount)
        total_adjustment = calculate_total_adjustment(
            rebooking['original_amount'], new_amount, rebooking['rebooking_fee'])

        reason = rebooking['reason']
        if 'reason' in data:
            reason = sanitize_input(data.get('reason'), 1000) or None

        db.execute('''
            UPDATE rebookings
            SET new_check_in_date = ?, new_check_out_date = ?,
                new_total_adults = ?, new_total_children = ?,
                new_amount = ?, amount_difference = ?, total_adjustment = ?,
                reason = ?, updated_at = ?
            WHERE id = ?
        ''', (check_in, check_out, adults, children, new_amount, amount_difference,
              total_adjustment, reason, get_now(), rebooking_id))

        _write_lines(db, rebooking_id, priced['accommodations'], priced['entrance_fees'])
        refresh_rebooking_payment_status(rebooking_id)

    return get_rebooking_by_id(rebooking_id)


# =============================================================================
# STATUS CHANGES
# =============================================================================

def approve_rebooking(rebooking_id: int, rebooking_fee=ZERO, admin_notes: str = None,
                      approved_by: int = None) -> dict:
    """
    Approve a pending rebooking and fix its total adjustment.

    The new dates are re-checked for availability, excluding the original
    booking, in the same transaction as the status change.

    Args:
        rebooking_id: Rebooking ID
        rebooking_fee: Fee charged for the change (>= 0)
        admin_notes: Notes shown to the guest
        approved_by: Acting user ID

    Returns:
        Updated rebooking dict, or None if not found

    Raises:
        InvalidStateTransitionError: If the rebooking is not pending
        BookingValidationError: On an invalid fee or an availability conflict
    """
    with transaction() as db:
        rebooking = get_rebooking_by_id(rebooking_id)
        if not rebooking:
            return None
        _require_transition(rebooking, STATUS_APPROVED, 'approve')

        errors = FieldErrors()
        _require_rebookable_booking(rebooking, errors)
        try:
            fee = to_decimal(rebooking_fee)
        except ValueError:
            errors.add('rebooking_fee', 'Enter a valid amount')
            fee = ZERO
        if fee < ZERO:
            errors.add('rebooking_fee', 'Rebooking fee cannot be negative')

        accommodation_ids = [line['accommodation_id'] for line in rebooking['accommodations']]
        add_conflict_errors(
            check_availability(accommodation_ids, rebooking['new_check_in_date'],
                               rebooking['new_check_out_date'],
                               exclude_booking_id=rebooking['original_booking_id']),
            errors
        )
        errors.raise_if_any()

        total_adjustment = calculate_total_adjustment(
            rebooking['original_amount'], rebooking['new_amount'], fee)
        now = get_now()

        db.execute('''
            UPDATE rebookings
            SET status = ?, rebooking_fee = ?, total_adjustment = ?, admin_notes = ?,
                processed_by = COALESCE(?, processed_by), approved_at = ?, updated_at = ?
            WHERE id = ?
        ''', (STATUS_APPROVED, fee, total_adjustment,
              sanitize_input(admin_notes, 1000) or None, approved_by, now, now, rebooking_id))
        refresh_rebooking_payment_status(rebooking_id)

    current_app.logger.info(
        f"Rebooking {rebooking['rebooking_number']} approved (adjustment {total_adjustment:.2f})"
    )
    return get_rebooking_by_id(rebooking_id)


def reject_rebooking(rebooking_id: int, admin_notes: str = None) -> dict:
    """
    Reject a pending rebooking. Rejected rebookings are stored as cancelled.

    Raises:
        InvalidStateTransitionError: If the rebooking is not pending
    """
    with transaction() as db:
        rebooking = get_rebooking_by_id(rebooking_id, include_details=False)
        if not rebooking:
            return None
        if rebooking['status'] != STATUS_PENDING:
            raise InvalidStateTransitionError(rebooking['status'], 'reject')

        db.execute('''
            UPDATE rebookings SET status = ?, admin_notes = ?, updated_at = ? WHERE id = ?
        ''', (STATUS_CANCELLED, sanitize_input(admin_notes, 1000) or None, get_now(), rebooking_id))

    current_app.logger.info(f"Rebooking {rebooking['rebooking_number']} rejected")
    return get_rebooking_by_id(rebooking_id)


def cancel_rebooking(rebooking_id: int) -> dict:
    """
    Cancel a pending or approved rebooking.

    Raises:
        InvalidStateTransitionError: If the rebooking is completed or cancelled
    """
    with transaction() as db:
        rebooking = get_rebooking_by_id(rebooking_id, include_details=False)
        if not rebooking:
            return None
        _require_transition(rebooking, STATUS_CANCELLED, 'cancel')

        db.execute('UPDATE rebookings SET status = ?, updated_at = ? WHERE id = ?',
                   (STATUS_CANCELLED, get_now(), rebooking_id))

    current_app.logger.info(f"Rebooking {rebooking['rebooking_number']} cancelled")
    return get_rebooking_by_id(rebooking_id)


def complete_rebooking(rebooking_id: int) -> dict:
    """
    Apply a settled, approved rebooking to its original booking.

    The booking takes the new dates, guest counts, lines and totals. Its
    total includes the rebooking fee, so a settled rebooking leaves the
    balance where it was.

    Returns:
        Updated rebooking dict, or None if not found

    Raises:
        InvalidStateTransitionError: If the rebooking is not approved
        BookingValidationError: If the adjustment is not settled yet
    """
    with transaction() as db:
        rebooking = get_rebooking_by_id(rebooking_id)
        if not rebooking:
            return None
        _require_transition(rebooking, STATUS_COMPLETED, 'complete')

        errors = FieldErrors()
        _require_rebookable_booking(rebooking, errors)
        if not rebooking['is_payment_complete']:
            if rebooking['total_adjustment'] > ZERO:
                errors.add('payment', f"Payment of {rebooking['remaining_payment_due']:.2f} "
                                      'is still required')
            else:
                errors.add('refund', f"Refund of {rebooking['remaining_refund_due']:.2f} "
                                     'is still required')
        errors.raise_if_any()

        booking_id = rebooking['original_booking_id']
        accommodation_total = money_sum(line['subtotal'] for line in rebooking['accommodations'])
        entrance_fee_total = money_sum(fee['subtotal'] for fee in rebooking['entrance_fees'])
        now = get_now()

        db.execute('''
            UPDATE bookings
            SET check_in_date = ?, check_out_date = ?, total_adults = ?, total_children = ?,
                accommodation_total = ?, entrance_fee_total = ?, total_amount = ?, updated_at = ?
            WHERE id = ?
        ''', (rebooking['new_check_in_date'], rebooking['new_check_out_date'],
              rebooking['new_total_adults'], rebooking['new_total_children'],
              accommodation_total, entrance_fee_total,
              rebooking['new_amount'] + rebooking['rebooking_fee'], now, booking_id))

        write_booking_lines(db, booking_id, rebooking['accommodations'], rebooking['entrance_fees'])
        recalculate_paid_amount(booking_id)

        payment_status = derive_payment_status(
            rebooking['total_adjustment'], rebooking['total_paid'], rebooking['total_refunded'])
        db.execute('''
            UPDATE rebookings SET status = ?, payment_status = ?, completed_at = ?, updated_at = ?
            WHERE id = ?
        ''', (STATUS_COMPLETED, payment_status, now, now, rebooking_id))

    current_app.logger.info(f"Rebooking {rebooking['rebooking_number']} completed")
    return get_rebooking_by_id(rebooking_id)


def delete_rebooking(rebooking_id: int) -> bool:
    """
    Delete a rebooking that has not been completed.

    Payments linked to it are deleted with it, so the booking's paid
    amount is recomputed afterwards.

    Returns:
        True if deleted, False if not found

    Raises:
        InvalidStateTransitionError: If the rebooking is completed
    """
    from utils.uploads import delete_reference_image

    with transaction() as db:
        rebooking = get_rebooking_by_id(rebooking_id, include_details=False)
        if not rebooking:
            return False
        if rebooking['status'] == STATUS_COMPLETED:
            raise InvalidStateTransitionError(rebooking['status'], 'delete')

        images = [row[0] for row in db.execute('''
            SELECT reference_image FROM payments
            WHERE rebooking_id = ? AND reference_image IS NOT NULL
            UNION ALL
            SELECT r.reference_image FROM refunds r
            JOIN payments p ON p.id = r.payment_id
            WHERE p.rebooking_id = ? AND r.reference_image IS NOT NULL
        ''', (rebooking_id, rebooking_id)).fetchall()]

        db.execute('DELETE FROM rebookings WHERE id = ?', (rebooking_id,))
        recalculate_paid_amount(rebooking['original_booking_id'])

    for image in images:
        delete_reference_image(image)

    current_app.logger.info(f"Rebooking {rebooking['rebooking_number']} deleted")
    return True
