"""
Tests for sequential identifiers and booking codes.
"""

import pytest
from datetime import date

from models.identifiers import (
    BOOKING_CODE_ALPHABET, BOOKING_CODE_LENGTH, format_identifier, next_identifier,
    generate_booking_number, generate_payment_number, generate_rebooking_number,
    generate_refund_number, generate_booking_code,
)


JUNE = date(2025, 6, 15)


class TestFormatIdentifier:

    def test_pads_to_four_digits(self):
        assert format_identifier('BK', '202506', 1) == 'BK-202506-0001'

    def test_grows_past_four_digits(self):
        assert format_identifier('PAY', '202506', 12345) == 'PAY-202506-12345'


class TestNextIdentifier:

    def test_first_of_month(self, app_ctx):
        assert generate_booking_number(JUNE) == 'BK-202506-0001'

    def test_increments(self, app_ctx):
        numbers = [generate_booking_number(JUNE) for _ in range(3)]

        assert numbers == ['BK-202506-0001', 'BK-202506-0002', 'BK-202506-0003']

    def test_prefixes_are_independent(self, app_ctx):
        generate_booking_number(JUNE)
        generate_booking_number(JUNE)

        assert generate_payment_number(JUNE) == 'PAY-202506-0001'
        assert generate_rebooking_number(JUNE) == 'RB-202506-0001'
        assert generate_refund_number(JUNE) == 'REF-202506-0001'

    def test_restarts_each_month(self, app_ctx):
        generate_booking_number(JUNE)
        generate_booking_number(JUNE)

        assert generate_booking_number(date(2025, 7, 1)) == 'BK-202507-0001'
        assert generate_booking_number(JUNE) == 'BK-202506-0003'

    def test_continues_after_existing_rows(self, app, booking_factory):
        """Without a counter row, the latest inserted number seeds the sequence."""
        booking_factory(booking_number='BK-202506-0007')

        with app.app_context():
            assert generate_booking_number(JUNE) == 'BK-202506-0008'

    def test_beyond_9999(self, app_ctx):
        from database import get_db

        get_db().execute('''
            INSERT INTO identifier_sequences (prefix, period, last_value)
            VALUES ('BK', '202506', 9999)
        ''')

        assert generate_booking_number(JUNE) == 'BK-202506-10000'

    def test_unknown_prefix(self, app_ctx):
        with pytest.raises(ValueError):
            next_identifier('XX', JUNE)

    def test_defaults_to_current_month(self, app_ctx):
        from utils.datetime_helpers import get_today

        period = get_today().strftime('%Y%m')

        assert generate_booking_number() == f'BK-{period}-0001'


class TestBookingCode:

    def test_shape(self, app_ctx):
        code = generate_booking_code()

        assert len(code) == BOOKING_CODE_LENGTH
        assert all(char in BOOKING_CODE_ALPHABET for char in code)

    def test_no_look_alike_characters(self):
        for char in '01ILO':
            assert char not in BOOKING_CODE_ALPHABET

    def test_codes_differ(self, app_ctx):
        codes = {generate_booking_code() for _ in range(20)}

        assert len(codes) == 20

    def test_gives_up_when_every_code_is_taken(self, app_ctx, monkeypatch):
        import models.identifiers as identifiers
        from database import get_db

        get_db().execute('''
            INSERT INTO bookings
            (booking_number, booking_code, source, booking_type, guest_name,
             check_in_date, total_adults, total_children)
            VALUES ('BK-X', '22222222', 'walk_in', 'day_tour', 'Taken', '2025-06-10', 1, 0)
        ''')
        monkeypatch.setattr(identifiers.secrets, 'choice', lambda alphabet: '2')

        with pytest.raises(ValueError):
            generate_booking_code(max_retries=3)
