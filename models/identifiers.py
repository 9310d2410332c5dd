"""
Sequential identifier generation.

Booking, payment, rebooking and refund numbers share one format:
{PREFIX}-{YYYYMM}-{NNNN}, where the sequence restarts every month.

The next value comes from the identifier_sequences counter table, which is
incremented inside the caller's write transaction. Callers must hold the
writer lock (database.transaction) so two requests cannot draw the same
number.
"""

import re
import secrets
from datetime import date

from database import get_db
from utils.datetime_helpers import get_today


# Prefix -> (table, column) holding issued identifiers
IDENTIFIER_TARGETS = {
    'BK': ('bookings', 'booking_number'),
    'PAY': ('payments', 'payment_number'),
    'RB': ('rebookings', 'rebooking_number'),
    'REF': ('refunds', 'refund_number'),
}

BOOKING_CODE_ALPHABET = '23456789ABCDEFGHJKMNPQRSTUVWXYZ'
BOOKING_CODE_LENGTH = 8

_TRAILING_DIGITS = re.compile(r'(\d+)$')


def format_identifier(prefix: str, period: str, sequence: int) -> str:
    """Render an identifier, padding the sequence to at least four digits."""
    return f'{prefix}-{period}-{sequence:04d}'


def _latest_issued_sequence(db, prefix: str, period: str) -> int:
    """
    Sequence of the most recently inserted identifier of a period.

    Ordered by insertion id, not by the numeric suffix.
    """
    table, column = IDENTIFIER_TARGETS[prefix]
    row = db.execute(f'''
        SELECT {column} FROM {table}
        WHERE {column} LIKE ?
        ORDER BY id DESC
        LIMIT 1
    ''', (f'{prefix}-{period}-%',)).fetchone()

    if not row:
        return 0

    match = _TRAILING_DIGITS.search(row[0])
    return int(match.group(1)) if match else 0


def next_identifier(prefix: str, today: date = None) -> str:
    """
    Draw the next identifier for a prefix in the current month.

    Args:
        prefix: One of BK, PAY, RB, REF
        today: Date that selects the period (default: today in the resort timezone)

    Returns:
        str: Identifier such as 'BK-202506-0001'

    Raises:
        ValueError: If the prefix is unknown
    """
    if prefix not in IDENTIFIER_TARGETS:
        raise ValueError(f'Unknown identifier prefix: {prefix}')

    period = (today or get_today()).strftime('%Y%m')
    db = get_db()

    row = db.execute('''
        SELECT last_value FROM identifier_sequences
        WHERE prefix = ? AND period = ?
    ''', (prefix, period)).fetchone()

    if row:
        sequence = row['last_value'] + 1
        db.execute('''
            UPDATE identifier_sequences SET last_value = ?
            WHERE prefix = ? AND period = ?
        ''', (sequence, prefix, period))
    else:
        # First draw of the period: continue after any number already issued
        sequence = _latest_issued_sequence(db, prefix, period) + 1
        db.execute('''
            INSERT INTO identifier_sequences (prefix, period, last_value)
            VALUES (?, ?, ?)
        ''', (prefix, period, sequence))

    return format_identifier(prefix, period, sequence)


def generate_booking_number(today: date = None) -> str:
    return next_identifier('BK', today)


def generate_payment_number(today: date = None) -> str:
    return next_identifier('PAY', today)


def generate_rebooking_number(today: date = None) -> str:
    return next_identifier('RB', today)


def generate_refund_number(today: date = None) -> str:
    return next_identifier('REF', today)


def generate_booking_code(max_retries: int = 10) -> str:
    """
    Generate the random guest-facing booking code.

    Uses an alphabet without look-alike characters (0/O, 1/I/L).

    Raises:
        ValueError: If no unused code was found after max_retries
    """
    db = get_db()

    for _ in range(max_retries):
        code = ''.join(secrets.choice(BOOKING_CODE_ALPHABET) for _ in range(BOOKING_CODE_LENGTH))
        exists = db.execute('SELECT 1 FROM bookings WHERE booking_code = ?', (code,)).fetchone()
        if not exists:
            return code

    raise ValueError('Could not generate a unique booking code')
