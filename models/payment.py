"""
Payment data access and services.

Each write recomputes the booking's paid amount and, for payments linked
to a rebooking, the rebooking's payment status, inside the same
transaction.
"""

from decimal import Decimal

from flask import current_app

from database import get_db, transaction
from utils.datetime_helpers import get_today, get_now
from utils.money import ZERO, to_decimal
from utils.uploads import save_reference_image, delete_reference_image
from utils.validators import FieldErrors, parse_positive_int, sanitize_input
from .identifiers import generate_payment_number
from .booking_crud import get_booking_by_id, recalculate_paid_amount, parse_date_field
from .booking_state import STATUS_CANCELLED
from .rebooking import (
    STATUS_APPROVED as REBOOKING_APPROVED, get_rebooking_by_id, refresh_rebooking_payment_status,
)


PAYMENT_METHODS = ('cash', 'card', 'bank', 'gcash', 'maya', 'other')


def _payment_from_row(row) -> dict:
    payment = dict(row)
    payment['amount'] = to_decimal(payment['amount'])
    payment['is_down_payment'] = bool(payment['is_down_payment'])
    return payment


def get_refunded_amount(payment_id: int) -> Decimal:
    """Sum of refunds made against a payment."""
    db = get_db()
    total = ZERO
    for row in db.execute('SELECT amount FROM refunds WHERE payment_id = ?', (payment_id,)).fetchall():
        total += to_decimal(row['amount'])
    return total


def _with_refund_totals(payment: dict) -> dict:
    payment['refunded_amount'] = get_refunded_amount(payment['id'])
    payment['refundable_amount'] = max(ZERO, payment['amount'] - payment['refunded_amount'])
    return payment


# =============================================================================
# READ
# =============================================================================

def get_payment_by_id(payment_id: int) -> dict:
    """
    Get payment by ID with its refunded and refundable amounts.

    Returns:
        Payment dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM payments WHERE id = ?', (payment_id,)).fetchone()
    return _with_refund_totals(_payment_from_row(row)) if row else None


def get_payments_for_booking(booking_id: int) -> list:
    """All payments of a booking, oldest first."""
    db = get_db()
    rows = db.execute('''
        SELECT p.*, r.rebooking_number
        FROM payments p
        LEFT JOIN rebookings r ON r.id = p.rebooking_id
        WHERE p.booking_id = ?
        ORDER BY p.payment_date, p.id
    ''', (booking_id,)).fetchall()
    return [_with_refund_totals(_payment_from_row(row)) for row in rows]


# =============================================================================
# VALIDATION
# =============================================================================

def _parse_payment_fields(data: dict, errors: FieldErrors, partial: bool = False) -> dict:
    fields = {}

    if not partial or 'amount' in data:
        try:
            amount = to_decimal(data.get('amount'))
        except ValueError:
            amount = None
        if amount is None or amount <= ZERO:
            errors.add('amount', 'Amount must be greater than zero')
        fields['amount'] = amount

    if not partial or 'payment_method' in data:
        method = data.get('payment_method')
        if method not in PAYMENT_METHODS:
            errors.add('payment_method', f'Payment method must be one of: {", ".join(PAYMENT_METHODS)}')
        fields['payment_method'] = method

    if not partial or 'payment_date' in data:
        fields['payment_date'] = parse_date_field(data, 'payment_date', errors) or get_today()

    if not partial or 'is_down_payment' in data:
        value = data.get('is_down_payment', False)
        if isinstance(value, str):
            value = value.strip().lower() in ('1', 'true', 'yes', 'on')
        fields['is_down_payment'] = bool(value)

    for field, limit in (('reference_number', 255), ('notes', 1000)):
        if not partial or field in data:
            fields[field] = sanitize_input(data.get(field), limit) or None

    return fields


def _validate_amount_limit(booking: dict, rebooking: dict, amount, errors: FieldErrors,
                           credit=ZERO) -> None:
    """
    Cap a payment at what is still owed.

    Args:
        credit: Amount of the payment being edited, added back to the limit
    """
    if amount is None or amount <= ZERO:
        return

    if rebooking:
        limit = rebooking['remaining_payment_due'] + credit
        if amount > limit:
            errors.add('amount', f'Amount cannot exceed the remaining rebooking payment of {limit:.2f}')
    else:
        limit = max(ZERO, booking['balance']) + credit
        if amount > limit:
            errors.add('amount', f'Amount cannot exceed the booking balance of {limit:.2f}')


# =============================================================================
# CREATE / UPDATE / DELETE
# =============================================================================

def create_payment(booking_id: int, data: dict, received_by: int = None, reference_image=None) -> dict:
    """
    Record a payment against a booking or one of its rebookings.

    Args:
        booking_id: Booking ID
        data: amount, payment_method, payment_date, is_down_payment,
            rebooking_id, reference_number, notes
        received_by: Acting user ID
        reference_image: Optional uploaded proof (werkzeug FileStorage)

    Returns:
        Created payment dict, or None if the booking does not exist

    Raises:
        BookingValidationError: With every field problem found
    """
    stored_image = None

    try:
        with transaction() as db:
            booking = get_booking_by_id(booking_id, include_details=False)
            if not booking:
                return None

            errors = FieldErrors()
            fields = _parse_payment_fields(data, errors)

            if booking['status'] == STATUS_CANCELLED:
                errors.add('booking', 'Payments cannot be recorded on a cancelled booking')

            rebooking = None
            rebooking_id = data.get('rebooking_id')
            if rebooking_id not in (None, ''):
                rebooking_id = parse_positive_int(rebooking_id, minimum=1)
                rebooking = get_rebooking_by_id(rebooking_id, include_details=False) if rebooking_id else None
                if not rebooking or rebooking['original_booking_id'] != booking_id:
                    errors.add('rebooking_id', 'Rebooking not found for this booking')
                    rebooking = None
                elif rebooking['status'] != REBOOKING_APPROVED:
                    errors.add('rebooking_id', 'Payments can only be recorded on approved rebookings')
            else:
                rebooking_id = None

            if fields['is_down_payment'] and not booking['down_payment_required']:
                errors.add('is_down_payment', 'This booking does not require a down payment')

            if 'rebooking_id' not in errors:
                _validate_amount_limit(booking, rebooking, fields['amount'], errors)
            errors.raise_if_any()

            if reference_image is not None and getattr(reference_image, 'filename', None):
                try:
                    stored_image = save_reference_image(reference_image, 'payments')
                except ValueError as e:
                    errors.add('reference_image', str(e))
                    errors.raise_if_any()

            payment_number = generate_payment_number()
            now = get_now()
            cursor = db.execute('''
                INSERT INTO payments
                (booking_id, rebooking_id, payment_number, amount, payment_method, is_down_payment,
                 reference_number, reference_image, notes, received_by, payment_date,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (booking_id, rebooking_id, payment_number, fields['amount'],
                  fields['payment_method'], int(fields['is_down_payment']),
                  fields['reference_number'], stored_image, fields['notes'], received_by,
                  fields['payment_date'], now, now))
            payment_id = cursor.lastrowid

            recalculate_paid_amount(booking_id)
            if rebooking_id:
                refresh_rebooking_payment_status(rebooking_id)
    except Exception:
        # The row never committed, so the uploaded file has no owner
        delete_reference_image(stored_image)
        raise

    current_app.logger.info(
        f"Payment {payment_number} of {fields['amount']:.2f} recorded for {booking['booking_number']}"
    )
    return get_payment_by_id(payment_id)


def update_payment(payment_id: int, data: dict, reference_image=None) -> dict:
    """
    Edit a payment.

    The amount stays within what was owed before this payment and cannot
    drop below what has already been refunded from it.

    Returns:
        Updated payment dict, or None if not found

    Raises:
        BookingValidationError: With every field problem found
    """
    stored_image = None
    old_image = None

    try:
        with transaction() as db:
            payment = get_payment_by_id(payment_id)
            if not payment:
                return None

            booking = get_booking_by_id(payment['booking_id'], include_details=False)
            rebooking = (get_rebooking_by_id(payment['rebooking_id'], include_details=False)
                         if payment['rebooking_id'] else None)

            errors = FieldErrors()
            fields = _parse_payment_fields(data, errors, partial=True)

            amount = fields.get('amount')
            if amount is not None and amount > ZERO:
                _validate_amount_limit(booking, rebooking, amount, errors, credit=payment['amount'])
                if amount < payment['refunded_amount']:
                    errors.add('amount', f"Amount cannot be less than the "
                                         f"{payment['refunded_amount']:.2f} already refunded")

            if fields.get('is_down_payment') and not booking['down_payment_required']:
                errors.add('is_down_payment', 'This booking does not require a down payment')
            errors.raise_if_any()

            if reference_image is not None and getattr(reference_image, 'filename', None):
                try:
                    stored_image = save_reference_image(reference_image, 'payments')
                except ValueError as e:
                    errors.add('reference_image', str(e))
                    errors.raise_if_any()
                fields['reference_image'] = stored_image
                old_image = payment['reference_image']

            if 'is_down_payment' in fields:
                fields['is_down_payment'] = int(fields['is_down_payment'])

            if fields:
                fields['updated_at'] = get_now()
                assignments = ', '.join(f'{field} = ?' for field in fields)
                db.execute(f'UPDATE payments SET {assignments} WHERE id = ?',
                           [*fields.values(), payment_id])

            recalculate_paid_amount(payment['booking_id'])
            if payment['rebooking_id']:
                refresh_rebooking_payment_status(payment['rebooking_id'])
    except Exception:
        delete_reference_image(stored_image)
        raise

    delete_reference_image(old_image)
    current_app.logger.info(f"Payment {payment['payment_number']} updated")
    return get_payment_by_id(payment_id)


def delete_payment(payment_id: int) -> bool:
    """
    Delete a payment, its refunds and their reference image files.

    Returns:
        True if deleted, False if not found
    """
    with transaction() as db:
        payment = get_payment_by_id(payment_id)
        if not payment:
            return False

        refund_rows = db.execute('''
            SELECT rebooking_id, reference_image FROM refunds WHERE payment_id = ?
        ''', (payment_id,)).fetchall()
        images = [payment['reference_image']] + [row['reference_image'] for row in refund_rows]
        rebooking_ids = {payment['rebooking_id']} | {row['rebooking_id'] for row in refund_rows}

        db.execute('DELETE FROM payments WHERE id = ?', (payment_id,))

        recalculate_paid_amount(payment['booking_id'])
        for rebooking_id in rebooking_ids:
            if rebooking_id:
                refresh_rebooking_payment_status(rebooking_id)

    for image in images:
        delete_reference_image(image)

    current_app.logger.info(f"Payment {payment['payment_number']} deleted")
    return True
