"""
Accommodation availability and conflict detection.

A booking holds its accommodations from check-in to check-out inclusive
(a day tour holds its single day). Rebookings change which dates a booking
effectively holds:

- an approved rebooking moves the hold to the rebooking's new dates;
- a pending rebooking keeps the original dates held until it is approved.
"""

from datetime import date

from database import get_db
from utils.datetime_helpers import parse_date, format_date


# Booking statuses that hold their accommodations
BLOCKING_STATUSES = ('pending', 'confirmed', 'checked_in')

CONFLICT_BOOKING = 'booking'
CONFLICT_REBOOKING = 'rebooking'
CONFLICT_PENDING_REBOOKING = 'booking_with_pending_rebooking'


# =============================================================================
# OVERLAP
# =============================================================================

def dates_overlap(check_in: date, check_out: date | None,
                  other_check_in: date, other_check_out: date | None) -> bool:
    """
    Inclusive overlap of two stays.

    A missing check-out means a single-day stay. Touching endpoints overlap:
    a stay ending on the 12th conflicts with one starting on the 12th.
    """
    check_out = check_out or check_in
    other_check_out = other_check_out or other_check_in
    return other_check_in <= check_out and other_check_out >= check_in


def _normalize_ids(accommodation_ids) -> list:
    """Integer ids in first-seen order, dropping duplicates and malformed values."""
    seen = []
    for value in accommodation_ids or []:
        if isinstance(value, bool):
            continue
        try:
            acc_id = int(value)
        except (TypeError, ValueError):
            continue
        if acc_id not in seen:
            seen.append(acc_id)
    return seen


def _latest_rebooking(db, booking_id: int, status: str):
    """Most recent rebooking of a booking in the given status."""
    return db.execute('''
        SELECT id, rebooking_number, new_check_in_date, new_check_out_date
        FROM rebookings
        WHERE original_booking_id = ? AND status = ?
        ORDER BY created_at DESC, id DESC
        LIMIT 1
    ''', (booking_id, status)).fetchone()


def _find_overlapping_bookings(db, accommodation_id: int, check_in: date,
                               check_out: date, exclude_booking_id: int = None) -> list:
    """
    Bookings holding an accommodation whose original dates, or the new dates
    of one of their approved rebookings, overlap the stay. Ordered by id.
    """
    placeholders = ','.join('?' * len(BLOCKING_STATUSES))
    query = f'''
        SELECT DISTINCT b.id, b.booking_number, b.check_in_date, b.check_out_date,
               a.name as accommodation_name
        FROM bookings b
        JOIN booking_accommodations ba ON ba.booking_id = b.id
        JOIN accommodations a ON a.id = ba.accommodation_id
        WHERE ba.accommodation_id = ?
          AND b.status IN ({placeholders})
          AND (
              (b.check_in_date <= ? AND COALESCE(b.check_out_date, b.check_in_date) >= ?)
              OR EXISTS (
                  SELECT 1 FROM rebookings r
                  WHERE r.original_booking_id = b.id
                    AND r.status = 'approved'
                    AND r.new_check_in_date <= ?
                    AND COALESCE(r.new_check_out_date, r.new_check_in_date) >= ?
              )
          )
    '''
    params = [accommodation_id, *BLOCKING_STATUSES, check_out, check_in, check_out, check_in]

    if exclude_booking_id:
        query += ' AND b.id != ?'
        params.append(exclude_booking_id)

    query += ' ORDER BY b.id'
    return db.execute(query, params).fetchall()


def _resolve_conflict(db, booking, accommodation_id: int, check_in: date, check_out: date):
    """
    Turn an overlapping booking into a conflict record, or None when an
    approved rebooking has moved it off the requested dates.
    """
    record = {
        'accommodation_id': accommodation_id,
        'accommodation_name': booking['accommodation_name'],
        'booking_id': booking['id'],
        'booking_number': booking['booking_number'],
        'rebooking_number': None,
    }

    approved = _latest_rebooking(db, booking['id'], 'approved')
    if approved:
        if not dates_overlap(check_in, check_out,
                             approved['new_check_in_date'], approved['new_check_out_date']):
            return None
        record.update({
            'conflict_type': CONFLICT_REBOOKING,
            'rebooking_number': approved['rebooking_number'],
            'check_in_date': approved['new_check_in_date'],
            'check_out_date': approved['new_check_out_date'],
        })
        return record

    pending = _latest_rebooking(db, booking['id'], 'pending')
    record.update({
        'conflict_type': CONFLICT_PENDING_REBOOKING if pending else CONFLICT_BOOKING,
        'check_in_date': booking['check_in_date'],
        'check_out_date': booking['check_out_date'],
    })
    if pending:
        record['rebooking_number'] = pending['rebooking_number']
    return record


# =============================================================================
# AVAILABILITY CHECK
# =============================================================================

def check_availability(accommodation_ids: list, check_in, check_out=None,
                       exclude_booking_id: int = None) -> list:
    """
    Find booking conflicts for a set of accommodations over a stay.

    Args:
        accommodation_ids: Accommodation IDs to check (duplicates checked once)
        check_in: Requested check-in (date or YYYY-MM-DD)
        check_out: Requested check-out, None for a day tour
        exclude_booking_id: Booking being edited or rebooked

    Returns:
        list: At most one conflict per accommodation, in input order:
            [{'accommodation_id': int, 'accommodation_name': str,
              'conflict_type': 'booking' | 'rebooking' | 'booking_with_pending_rebooking',
              'booking_id': int, 'booking_number': str, 'rebooking_number': str | None,
              'check_in_date': date, 'check_out_date': date | None}]
            An empty list means every accommodation is free.
    """
    check_in = parse_date(check_in)
    check_out = parse_date(check_out) if check_out else check_in

    db = get_db()
    conflicts = []

    for acc_id in _normalize_ids(accommodation_ids):
        for booking in _find_overlapping_bookings(db, acc_id, check_in, check_out,
                                                  exclude_booking_id):
            conflict = _resolve_conflict(db, booking, acc_id, check_in, check_out)
            if conflict:
                conflicts.append(conflict)
                break

    return conflicts


def format_conflict_messages(conflicts: list) -> list:
    """
    Human-readable message for each conflict record.

    Args:
        conflicts: Records returned by check_availability

    Returns:
        list of str, one per conflict
    """
    messages = []

    for conflict in conflicts:
        message = f"Accommodation '{conflict['accommodation_name']}' is not available. "

        conflict_type = conflict.get('conflict_type')
        if conflict_type == CONFLICT_REBOOKING:
            message += (f"Conflicting with rebooking {conflict['rebooking_number']} "
                        f"(originally {conflict['booking_number']}) ")
        elif conflict_type == CONFLICT_PENDING_REBOOKING:
            message += (f"Booking {conflict['booking_number']} has pending rebooking "
                        f"{conflict['rebooking_number']}. ")
        else:
            message += f"Conflicting with booking {conflict['booking_number']} "

        if conflict.get('check_in_date'):
            message += f"from {format_date(conflict['check_in_date'])}"
        if conflict.get('check_out_date'):
            message += f" to {format_date(conflict['check_out_date'])}"

        messages.append(message.rstrip())

    return messages


def is_available(accommodation_ids: list, check_in, check_out=None,
                 exclude_booking_id: int = None) -> bool:
    """Shortcut: True when check_availability finds nothing."""
    return not check_availability(accommodation_ids, check_in, check_out, exclude_booking_id)
