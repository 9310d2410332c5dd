"""
Accommodation and rate data access functions.
Catalogue reads plus create/update/deactivate for accommodations and rates.
"""

from flask import current_app

from database import get_db, transaction
from utils.money import ZERO, to_decimal
from utils.validators import FieldErrors, parse_positive_int, sanitize_input

RATE_MONEY_FIELDS = ('rate', 'additional_pax_rate', 'adult_entrance_fee', 'child_entrance_fee')


def _rate_to_dict(row) -> dict:
    rate = dict(row)
    for field in RATE_MONEY_FIELDS:
        rate[field] = to_decimal(rate[field])
    rate['includes_free_entrance'] = bool(rate['includes_free_entrance'])
    return rate


def get_all_accommodations(active_only: bool = True, include_rates: bool = False) -> list:
    """
    Get all accommodations.

    Args:
        active_only: If True, only return active accommodations
        include_rates: Attach each accommodation's active rates under 'rates'

    Returns:
        List of accommodation dicts ordered by type and name
    """
    db = get_db()

    query = 'SELECT * FROM accommodations'
    if active_only:
        query += " WHERE status = 'active'"
    query += ' ORDER BY type, name'

    accommodations = [dict(row) for row in db.execute(query).fetchall()]

    if include_rates:
        for acc in accommodations:
            acc['rates'] = get_rates_for_accommodation(acc['id'])

    return accommodations


def get_accommodation_by_id(accommodation_id: int) -> dict:
    """
    Get accommodation by ID.

    Returns:
        Accommodation dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM accommodations WHERE id = ?', (accommodation_id,)).fetchone()
    return dict(row) if row else None


def get_rates_for_accommodation(accommodation_id: int, active_only: bool = True) -> list:
    """List an accommodation's rates, day tour first."""
    db = get_db()
    query = 'SELECT * FROM accommodation_rates WHERE accommodation_id = ?'
    if active_only:
        query += " AND status = 'active'"
    query += ' ORDER BY booking_type, id'
    return [_rate_to_dict(row) for row in db.execute(query, (accommodation_id,)).fetchall()]


def get_rate_by_id(rate_id: int) -> dict:
    """
    Get a rate by ID with money fields as Decimal.

    Returns:
        Rate dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM accommodation_rates WHERE id = ?', (rate_id,)).fetchone()
    return _rate_to_dict(row) if row else None


def find_rate(accommodation_id: int, booking_type: str) -> dict:
    """
    First active rate of an accommodation for a booking type.

    Returns:
        Rate dict or None if the accommodation has no such rate
    """
    db = get_db()
    row = db.execute('''
        SELECT * FROM accommodation_rates
        WHERE accommodation_id = ? AND booking_type = ? AND status = 'active'
        ORDER BY id
        LIMIT 1
    ''', (accommodation_id, booking_type)).fetchone()
    return _rate_to_dict(row) if row else None


# =============================================================================
# MANAGEMENT
# =============================================================================

ACCOMMODATION_TYPES = ('room', 'cottage')
RECORD_STATUSES = ('active', 'inactive')
ACCOMMODATION_FIELDS = ('name', 'type', 'min_capacity', 'max_capacity', 'description', 'status')
RATE_FIELDS = ('booking_type', 'rate', 'additional_pax_rate', 'includes_free_entrance',
               'adult_entrance_fee', 'child_entrance_fee', 'status')


def _parse_accommodation_fields(data: dict, current: dict, errors: FieldErrors) -> dict:
    """
    Validate accommodation fields present in data.

    Capacity bounds are checked against the current values for fields
    left out of a partial update.
    """
    fields = {}

    if 'name' in data or not current:
        name = sanitize_input(data.get('name'), max_length=255)
        if not name:
            errors.add('name', 'Name is required')
        else:
            fields['name'] = name

    if 'type' in data or not current:
        if data.get('type') not in ACCOMMODATION_TYPES:
            errors.add('type', 'Type must be room or cottage')
        else:
            fields['type'] = data['type']

    for field, default in (('min_capacity', 1), ('max_capacity', None)):
        if field in data or not current:
            value = data.get(field, default)
            parsed = parse_positive_int(value, minimum=1)
            if parsed is None:
                errors.add(field, 'Capacity must be a whole number of at least 1')
            else:
                fields[field] = parsed

    min_capacity = fields.get('min_capacity', current.get('min_capacity'))
    max_capacity = fields.get('max_capacity', current.get('max_capacity'))
    if (min_capacity and max_capacity and max_capacity < min_capacity
            and 'min_capacity' not in errors and 'max_capacity' not in errors):
        errors.add('max_capacity', 'Maximum capacity cannot be below minimum capacity')

    if 'description' in data:
        fields['description'] = sanitize_input(data.get('description'), max_length=2000) or None

    if 'status' in data:
        if data['status'] not in RECORD_STATUSES:
            errors.add('status', 'Status must be active or inactive')
        else:
            fields['status'] = data['status']

    return fields


def _check_unique_name(db, name: str, accommodation_id: int, errors: FieldErrors) -> None:
    row = db.execute('''
        SELECT id FROM accommodations WHERE LOWER(name) = LOWER(?) AND id != ?
    ''', (name, accommodation_id or 0)).fetchone()
    if row:
        errors.add('name', f"An accommodation named '{name}' already exists")


def create_accommodation(data: dict) -> dict:
    """
    Create an accommodation.

    Args:
        data: name, type (room | cottage), min_capacity, max_capacity,
            description, status

    Returns:
        The created accommodation dict

    Raises:
        BookingValidationError: With every field problem found
    """
    with transaction() as db:
        errors = FieldErrors()
        fields = _parse_accommodation_fields(data, {}, errors)
        if 'name' in fields:
            _check_unique_name(db, fields['name'], None, errors)
        errors.raise_if_any()

        columns = ', '.join(fields)
        placeholders = ', '.join('?' * len(fields))
        cursor = db.execute(f'INSERT INTO accommodations ({columns}) VALUES ({placeholders})',
                            list(fields.values()))
        accommodation_id = cursor.lastrowid

    current_app.logger.info(f"Accommodation '{fields['name']}' created")
    return get_accommodation_by_id(accommodation_id)


def update_accommodation(accommodation_id: int, data: dict) -> dict:
    """
    Update the given accommodation fields.

    Existing bookings keep their priced lines; capacity changes apply to
    new bookings and rebookings.

    Returns:
        Updated accommodation dict, or None if not found

    Raises:
        BookingValidationError: With every field problem found
    """
    with transaction() as db:
        accommodation = get_accommodation_by_id(accommodation_id)
        if not accommodation:
            return None

        errors = FieldErrors()
        data = {key: value for key, value in data.items() if key in ACCOMMODATION_FIELDS}
        fields = _parse_accommodation_fields(data, accommodation, errors)
        if 'name' in fields:
            _check_unique_name(db, fields['name'], accommodation_id, errors)
        errors.raise_if_any()

        if fields:
            assignments = ', '.join(f'{field} = ?' for field in fields)
            db.execute(f'UPDATE accommodations SET {assignments} WHERE id = ?',
                       [*fields.values(), accommodation_id])

    return get_accommodation_by_id(accommodation_id)


def deactivate_accommodation(accommodation_id: int) -> dict:
    """
    Take an accommodation out of sale.

    Bookings already holding it are kept; new bookings and rebookings
    reject it until it is set back to active.

    Returns:
        Updated accommodation dict, or None if not found
    """
    accommodation = update_accommodation(accommodation_id, {'status': 'inactive'})
    if accommodation:
        current_app.logger.info(f"Accommodation '{accommodation['name']}' deactivated")
    return accommodation


def _parse_rate_fields(data: dict, partial: bool, errors: FieldErrors) -> dict:
    """Validate rate fields present in data; money must be zero or more."""
    fields = {}

    if 'booking_type' in data or not partial:
        if data.get('booking_type') not in ('day_tour', 'overnight'):
            errors.add('booking_type', 'Booking type must be day_tour or overnight')
        else:
            fields['booking_type'] = data['booking_type']

    for field in RATE_MONEY_FIELDS:
        if field in data or (field == 'rate' and not partial):
            try:
                amount = to_decimal(data.get(field))
            except ValueError:
                errors.add(field, 'Enter a valid amount')
                continue
            if field == 'rate' and data.get(field) in (None, ''):
                errors.add(field, 'Rate is required')
            elif amount < ZERO:
                errors.add(field, 'Amount cannot be negative')
            else:
                fields[field] = amount

    if 'includes_free_entrance' in data:
        value = data['includes_free_entrance']
        if isinstance(value, str):
            value = value.strip().lower() in ('1', 'true', 'yes', 'on')
        fields['includes_free_entrance'] = int(bool(value))

    if 'status' in data:
        if data['status'] not in RECORD_STATUSES:
            errors.add('status', 'Status must be active or inactive')
        else:
            fields['status'] = data['status']

    return fields


def _check_unique_rate(db, accommodation_id: int, booking_type: str, rate_id: int,
                       errors: FieldErrors) -> None:
    """One rate per accommodation and booking type; inactive ones are reactivated instead."""
    row = db.execute('''
        SELECT id FROM accommodation_rates
        WHERE accommodation_id = ? AND booking_type = ? AND id != ?
    ''', (accommodation_id, booking_type, rate_id or 0)).fetchone()
    if row:
        errors.add('booking_type', 'A rate for this accommodation and booking type already exists.')


def create_rate(accommodation_id: int, data: dict) -> dict:
    """
    Add a day tour or overnight rate to an accommodation.

    Args:
        accommodation_id: Accommodation ID
        data: booking_type, rate, additional_pax_rate, includes_free_entrance,
            adult_entrance_fee, child_entrance_fee, status

    Returns:
        The created rate dict, or None if the accommodation does not exist

    Raises:
        BookingValidationError: With every field problem found
    """
    with transaction() as db:
        accommodation = get_accommodation_by_id(accommodation_id)
        if not accommodation:
            return None

        errors = FieldErrors()
        fields = _parse_rate_fields(data, partial=False, errors=errors)
        if 'booking_type' in fields:
            _check_unique_rate(db, accommodation_id, fields['booking_type'], None, errors)
        errors.raise_if_any()

        fields['accommodation_id'] = accommodation_id
        columns = ', '.join(fields)
        placeholders = ', '.join('?' * len(fields))
        cursor = db.execute(f'INSERT INTO accommodation_rates ({columns}) VALUES ({placeholders})',
                            list(fields.values()))
        rate_id = cursor.lastrowid

    current_app.logger.info(
        f"Rate {fields['booking_type']} {fields['rate']:.2f} added to '{accommodation['name']}'"
    )
    return get_rate_by_id(rate_id)


def update_rate(rate_id: int, data: dict) -> dict:
    """
    Update the given rate fields.

    Bookings keep the amounts they were priced with.

    Returns:
        Updated rate dict, or None if not found

    Raises:
        BookingValidationError: With every field problem found
    """
    with transaction() as db:
        rate = get_rate_by_id(rate_id)
        if not rate:
            return None

        errors = FieldErrors()
        data = {key: value for key, value in data.items() if key in RATE_FIELDS}
        fields = _parse_rate_fields(data, partial=True, errors=errors)
        if fields.get('booking_type', rate['booking_type']) != rate['booking_type']:
            _check_unique_rate(db, rate['accommodation_id'], fields['booking_type'], rate_id, errors)
        errors.raise_if_any()

        if fields:
            assignments = ', '.join(f'{field} = ?' for field in fields)
            db.execute(f'UPDATE accommodation_rates SET {assignments} WHERE id = ?',
                       [*fields.values(), rate_id])

    return get_rate_by_id(rate_id)


def deactivate_rate(rate_id: int) -> dict:
    """Stop offering a rate. Returns the updated rate, or None if not found."""
    return update_rate(rate_id, {'status': 'inactive'})
