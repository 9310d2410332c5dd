"""
Refund data access and services.

Creating, updating or deleting a refund recomputes the paid amount of the
booking that owns the refunded payment and refreshes the payment status of
every rebooking the refund settles.
"""

from flask import current_app

from database import get_db, transaction
from utils.datetime_helpers import get_today, get_now
from utils.money import ZERO, to_decimal
from utils.uploads import save_reference_image, delete_reference_image
from utils.validators import FieldErrors, parse_positive_int, sanitize_input
from .identifiers import generate_refund_number
from .booking_crud import recalculate_paid_amount, parse_date_field
from .payment import get_payment_by_id
from .rebooking import get_rebooking_by_id, refresh_rebooking_payment_status


REFUND_METHODS = ('cash', 'bank', 'gcash', 'maya', 'original_method', 'other')


def _refund_from_row(row) -> dict:
    refund = dict(row)
    refund['amount'] = to_decimal(refund['amount'])
    return refund


def get_refund_by_id(refund_id: int) -> dict:
    """
    Get refund by ID with its payment's booking id.

    Returns:
        Refund dict or None if not found
    """
    db = get_db()
    row = db.execute('''
        SELECT r.*, p.booking_id, p.payment_number
        FROM refunds r
        JOIN payments p ON p.id = r.payment_id
        WHERE r.id = ?
    ''', (refund_id,)).fetchone()
    return _refund_from_row(row) if row else None


def get_refunds_for_payment(payment_id: int) -> list:
    """All refunds made against a payment, oldest first."""
    db = get_db()
    rows = db.execute('''
        SELECT r.*, p.booking_id, p.payment_number
        FROM refunds r
        JOIN payments p ON p.id = r.payment_id
        WHERE r.payment_id = ?
        ORDER BY r.refund_date, r.id
    ''', (payment_id,)).fetchall()
    return [_refund_from_row(row) for row in rows]


def _parse_refund_fields(data: dict, errors: FieldErrors, partial: bool = False) -> dict:
    fields = {}

    if not partial or 'amount' in data:
        try:
            amount = to_decimal(data.get('amount'))
        except ValueError:
            amount = None
        if amount is None or amount <= ZERO:
            errors.add('amount', 'Amount must be greater than zero')
        fields['amount'] = amount

    if not partial or 'refund_method' in data:
        method = data.get('refund_method')
        if method not in REFUND_METHODS:
            errors.add('refund_method', f'Refund method must be one of: {", ".join(REFUND_METHODS)}')
        fields['refund_method'] = method

    if not partial or 'refund_date' in data:
        fields['refund_date'] = parse_date_field(data, 'refund_date', errors) or get_today()

    for field, limit in (('reference_number', 255), ('reason', 1000), ('notes', 1000)):
        if not partial or field in data:
            fields[field] = sanitize_input(data.get(field), limit) or None

    return fields


def _sync_aggregates(booking_id: int, rebooking_ids) -> None:
    """Recompute the booking's paid amount and each touched rebooking's status."""
    recalculate_paid_amount(booking_id)
    for rebooking_id in set(rebooking_ids):
        if rebooking_id:
            refresh_rebooking_payment_status(rebooking_id)


def create_refund(payment_id: int, data: dict, processed_by: int = None, reference_image=None) -> dict:
    """
    Refund part or all of a payment.

    Args:
        payment_id: Payment being refunded
        data: amount, refund_method, refund_date, rebooking_id,
            reference_number, reason, notes
        processed_by: Acting user ID
        reference_image: Optional uploaded proof (werkzeug FileStorage)

    Returns:
        Created refund dict, or None if the payment does not exist

    Raises:
        BookingValidationError: With every field problem found
        BookingIntegrityError: If the payment's booking has disappeared
    """
    stored_image = None

    try:
        with transaction() as db:
            payment = get_payment_by_id(payment_id)
            if not payment:
                return None

            errors = FieldErrors()
            fields = _parse_refund_fields(data, errors)

            amount = fields['amount']
            if amount is not None and amount > payment['refundable_amount']:
                errors.add('amount', f"Refund amount cannot exceed remaining amount of "
                                     f"{payment['refundable_amount']:.2f}.")

            rebooking_id = data.get('rebooking_id')
            if rebooking_id not in (None, ''):
                rebooking_id = parse_positive_int(rebooking_id, minimum=1)
                rebooking = get_rebooking_by_id(rebooking_id, include_details=False) if rebooking_id else None
                if not rebooking or rebooking['original_booking_id'] != payment['booking_id']:
                    errors.add('rebooking_id', 'Rebooking not found for this booking')
            else:
                rebooking_id = None

            errors.raise_if_any()

            if reference_image is not None and getattr(reference_image, 'filename', None):
                try:
                    stored_image = save_reference_image(reference_image, 'refunds')
                except ValueError as e:
                    errors.add('reference_image', str(e))
                    errors.raise_if_any()

            refund_number = generate_refund_number()
            now = get_now()
            cursor = db.execute('''
                INSERT INTO refunds
                (payment_id, rebooking_id, refund_number, amount, refund_method,
                 reference_number, reference_image, reason, notes, processed_by, refund_date,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (payment_id, rebooking_id, refund_number, amount, fields['refund_method'],
                  fields['reference_number'], stored_image, fields['reason'], fields['notes'],
                  processed_by, fields['refund_date'], now, now))
            refund_id = cursor.lastrowid

            _sync_aggregates(payment['booking_id'], [rebooking_id, payment['rebooking_id']])
    except Exception:
        delete_reference_image(stored_image)
        raise

    current_app.logger.info(
        f"Refund {refund_number} of {amount:.2f} processed on payment {payment['payment_number']}"
    )
    return get_refund_by_id(refund_id)


def update_refund(refund_id: int, data: dict, reference_image=None) -> dict:
    """
    Edit a refund. The amount stays within the payment's unrefunded remainder.

    Returns:
        Updated refund dict, or None if not found

    Raises:
        BookingValidationError: With every field problem found
    """
    stored_image = None
    old_image = None

    try:
        with transaction() as db:
            refund = get_refund_by_id(refund_id)
            if not refund:
                return None
            payment = get_payment_by_id(refund['payment_id'])

            errors = FieldErrors()
            fields = _parse_refund_fields(data, errors, partial=True)

            amount = fields.get('amount')
            limit = payment['refundable_amount'] + refund['amount']
            if amount is not None and amount > limit:
                errors.add('amount', f'Refund amount cannot exceed remaining amount of {limit:.2f}.')
            errors.raise_if_any()

            if reference_image is not None and getattr(reference_image, 'filename', None):
                try:
                    stored_image = save_reference_image(reference_image, 'refunds')
                except ValueError as e:
                    errors.add('reference_image', str(e))
                    errors.raise_if_any()
                fields['reference_image'] = stored_image
                old_image = refund['reference_image']

            if fields:
                fields['updated_at'] = get_now()
                assignments = ', '.join(f'{field} = ?' for field in fields)
                db.execute(f'UPDATE refunds SET {assignments} WHERE id = ?',
                           [*fields.values(), refund_id])

            _sync_aggregates(payment['booking_id'], [refund['rebooking_id'], payment['rebooking_id']])
    except Exception:
        delete_reference_image(stored_image)
        raise

    delete_reference_image(old_image)
    current_app.logger.info(f"Refund {refund['refund_number']} updated")
    return get_refund_by_id(refund_id)


def delete_refund(refund_id: int) -> bool:
    """
    Delete a refund and its reference image file.

    Returns:
        True if deleted, False if not found
    """
    with transaction() as db:
        refund = get_refund_by_id(refund_id)
        if not refund:
            return False
        payment_rebooking = db.execute('SELECT rebooking_id FROM payments WHERE id = ?',
                                       (refund['payment_id'],)).fetchone()

        db.execute('DELETE FROM refunds WHERE id = ?', (refund_id,))
        _sync_aggregates(refund['booking_id'],
                         [refund['rebooking_id'], payment_rebooking['rebooking_id']])

    delete_reference_image(refund['reference_image'])
    current_app.logger.info(f"Refund {refund['refund_number']} deleted")
    return True
