"""
Tests for the per-date occupancy calendar.
"""

from datetime import date
from decimal import Decimal

from conftest import COTTAGE_A, COTTAGE_B, FAMILY_ROOM, DELUXE_ROOM


class TestBookingForDate:

    def test_booked_day(self, app_ctx, booking_factory):
        from models.booking_calendar import get_booking_for_date

        booking_id = booking_factory(booking_number='BK-1')

        booking = get_booking_for_date(COTTAGE_A, '2025-06-11')

        assert booking['booking_id'] == booking_id
        assert booking['booking_number'] == 'BK-1'
        assert booking['guest_name'] == 'Test Guest'
        assert booking['status'] == 'confirmed'
        assert booking['hold_type'] == 'booking'
        assert booking['check_in_date'] == date(2025, 6, 10)
        assert booking['check_out_date'] == date(2025, 6, 12)

    def test_checkout_day_is_held(self, app_ctx, booking_factory):
        from models.booking_calendar import get_booking_for_date

        booking_factory()

        assert get_booking_for_date(COTTAGE_A, date(2025, 6, 12)) is not None
        assert get_booking_for_date(COTTAGE_A, date(2025, 6, 13)) is None
        assert get_booking_for_date(COTTAGE_B, date(2025, 6, 11)) is None

    def test_cancelled_booking_frees_day(self, app_ctx, booking_factory):
        from models.booking_calendar import get_booking_for_date

        booking_factory(status='cancelled')

        assert get_booking_for_date(COTTAGE_A, '2025-06-11') is None

    def test_approved_rebooking_moves_hold(self, app_ctx, booking_factory, rebooking_factory):
        from models.booking_calendar import get_booking_for_date

        booking_id = booking_factory()
        rebooking_factory(booking_id, status='approved')

        assert get_booking_for_date(COTTAGE_A, '2025-06-11') is None
        moved = get_booking_for_date(COTTAGE_A, '2025-06-21')
        assert moved['booking_id'] == booking_id
        assert moved['hold_type'] == 'rebooking'
        assert moved['rebooking_number'] == 'RB-TEST-0001'
        assert moved['check_in_date'] == date(2025, 6, 20)

    def test_pending_rebooking_keeps_original_dates(self, app_ctx, booking_factory,
                                                    rebooking_factory):
        from models.booking_calendar import get_booking_for_date

        booking_id = booking_factory()
        rebooking_factory(booking_id, status='pending')

        held = get_booking_for_date(COTTAGE_A, '2025-06-11')
        assert held['hold_type'] == 'booking_with_pending_rebooking'
        assert held['rebooking_number'] == 'RB-TEST-0001'
        assert get_booking_for_date(COTTAGE_A, '2025-06-21') is None


class TestAccommodationsForDate:

    def test_rates_and_occupancy(self, app_ctx, booking_factory):
        from models.booking_calendar import get_accommodations_for_date

        booking_factory(booking_number='BK-1')

        accommodations = {acc['id']: acc for acc in get_accommodations_for_date('2025-06-11')}

        assert set(accommodations) == {COTTAGE_A, COTTAGE_B, FAMILY_ROOM, DELUXE_ROOM}
        assert accommodations[COTTAGE_A]['is_available'] is False
        assert accommodations[COTTAGE_A]['booking']['booking_number'] == 'BK-1'
        assert accommodations[COTTAGE_B]['is_available'] is True
        assert accommodations[COTTAGE_B]['booking'] is None
        assert accommodations[DELUXE_ROOM]['day_tour_rate'] is None
        assert accommodations[DELUXE_ROOM]['overnight_rate'] == Decimal('4500.00')

    def test_inactive_accommodation_left_out(self, app_ctx):
        from models.accommodation import deactivate_accommodation
        from models.booking_calendar import get_accommodations_for_date

        deactivate_accommodation(DELUXE_ROOM)

        ids = [acc['id'] for acc in get_accommodations_for_date('2025-06-11')]

        assert DELUXE_ROOM not in ids
        assert len(ids) == 3


class TestMonthOverview:

    def test_every_day_of_month(self, app_ctx):
        from models.booking_calendar import get_month_overview

        overview = get_month_overview('2025-06-15')

        assert len(overview) == 30
        assert min(overview) == '2025-06-01'
        assert max(overview) == '2025-06-30'
        assert overview['2025-06-01'] == {'total': 4, 'available': 4, 'booked': 0,
                                          'status': 'available'}

    def test_partial_and_full_days(self, app_ctx, booking_factory):
        from models.booking_calendar import get_month_overview

        booking_factory()
        for accommodation_id in (COTTAGE_A, COTTAGE_B, FAMILY_ROOM, DELUXE_ROOM):
            booking_factory(accommodation_id=accommodation_id,
                            check_in='2025-06-25', check_out='2025-06-26')

        overview = get_month_overview(date(2025, 6, 1))

        assert overview['2025-06-11'] == {'total': 4, 'available': 3, 'booked': 1,
                                          'status': 'partial'}
        assert overview['2025-06-25']['status'] == 'full'
        assert overview['2025-06-26']['available'] == 0
        assert overview['2025-06-27']['status'] == 'available'

    def test_february(self, app_ctx):
        from models.booking_calendar import get_month_overview

        assert len(get_month_overview('2024-02-10')) == 29
        assert len(get_month_overview('2025-02-10')) == 28
