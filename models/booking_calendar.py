"""
Per-date occupancy views for the front desk calendar.

Uses the same effective-dates rule as the availability checker: a booking
whose approved rebooking moved it elsewhere no longer occupies its original
dates, and a pending rebooking leaves the original dates occupied.
"""

import calendar
from datetime import date

from database import get_db
from utils.datetime_helpers import parse_date
from .accommodation import get_all_accommodations, find_rate
from .booking_availability import _find_overlapping_bookings, _resolve_conflict


def get_booking_for_date(accommodation_id: int, day) -> dict:
    """
    The booking occupying an accommodation on a day.

    Args:
        accommodation_id: Accommodation ID
        day: date or YYYY-MM-DD

    Returns:
        dict with booking_id, booking_number, guest_name, status, booking_type,
        hold_type, rebooking_number and the effective check_in_date /
        check_out_date, or None when the accommodation is free
    """
    day = parse_date(day)
    db = get_db()

    for booking in _find_overlapping_bookings(db, accommodation_id, day, day):
        hold = _resolve_conflict(db, booking, accommodation_id, day, day)
        if not hold:
            continue

        row = db.execute('''
            SELECT guest_name, status, booking_type FROM bookings WHERE id = ?
        ''', (booking['id'],)).fetchone()
        return {
            'booking_id': booking['id'],
            'booking_number': booking['booking_number'],
            'guest_name': row['guest_name'],
            'status': row['status'],
            'booking_type': row['booking_type'],
            'hold_type': hold['conflict_type'],
            'rebooking_number': hold['rebooking_number'],
            'check_in_date': hold['check_in_date'],
            'check_out_date': hold['check_out_date'],
        }

    return None


def get_accommodations_for_date(day) -> list:
    """
    Active accommodations with their rates and occupancy on a day.

    Returns:
        list of accommodation dicts with day_tour_rate, overnight_rate,
        is_available and booking (None when available)
    """
    day = parse_date(day)
    result = []

    for accommodation in get_all_accommodations(active_only=True):
        day_tour = find_rate(accommodation['id'], 'day_tour')
        overnight = find_rate(accommodation['id'], 'overnight')
        booking = get_booking_for_date(accommodation['id'], day)

        result.append({
            **accommodation,
            'day_tour_rate': day_tour['rate'] if day_tour else None,
            'overnight_rate': overnight['rate'] if overnight else None,
            'is_available': booking is None,
            'booking': booking,
        })

    return result


def _day_status(total: int, available: int) -> str:
    if available == 0:
        return 'full'
    if available == total:
        return 'available'
    return 'partial'


def get_month_overview(day) -> dict:
    """
    Occupancy counts for every day of the month containing day.

    Returns:
        dict keyed by YYYY-MM-DD:
            {'total': int, 'available': int, 'booked': int,
             'status': 'available' | 'partial' | 'full'}
    """
    day = parse_date(day)
    _, days_in_month = calendar.monthrange(day.year, day.month)
    accommodation_ids = [acc['id'] for acc in get_all_accommodations(active_only=True)]
    total = len(accommodation_ids)

    overview = {}
    for number in range(1, days_in_month + 1):
        current = date(day.year, day.month, number)
        booked = sum(1 for acc_id in accommodation_ids
                     if get_booking_for_date(acc_id, current) is not None)
        overview[current.isoformat()] = {
            'total': total,
            'available': total - booked,
            'booked': booked,
            'status': _day_status(total, total - booked),
        }

    return overview
