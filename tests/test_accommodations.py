"""
Tests for accommodation and rate management.
"""

import pytest
from decimal import Decimal

from conftest import COTTAGE_A, FAMILY_ROOM, DELUXE_ROOM
from utils.validators import BookingValidationError


def _validation_errors(func, *args, **kwargs):
    with pytest.raises(BookingValidationError) as exc_info:
        func(*args, **kwargs)
    return exc_info.value.errors


class TestCatalogue:

    def test_active_accommodations(self, app_ctx):
        from models.accommodation import get_all_accommodations

        names = [acc['name'] for acc in get_all_accommodations()]

        assert names == ['Cottage A', 'Cottage B', 'Deluxe Room', 'Family Room']

    def test_rates_are_decimal(self, app_ctx):
        from models.accommodation import find_rate

        rate = find_rate(COTTAGE_A, 'overnight')

        assert rate['rate'] == Decimal('2500.00')
        assert rate['adult_entrance_fee'] == Decimal('150.00')
        assert rate['includes_free_entrance'] is False

    def test_missing_rate(self, app_ctx):
        from models.accommodation import find_rate

        assert find_rate(DELUXE_ROOM, 'day_tour') is None


class TestCreateAccommodation:

    def test_create(self, app_ctx):
        from models.accommodation import create_accommodation

        accommodation = create_accommodation({
            'name': '  Garden Villa ', 'type': 'room',
            'min_capacity': 2, 'max_capacity': '5', 'description': 'Near the pool',
        })

        assert accommodation['id'] == 5
        assert accommodation['name'] == 'Garden Villa'
        assert accommodation['max_capacity'] == 5
        assert accommodation['status'] == 'active'

    def test_required_fields(self, app_ctx):
        from models.accommodation import create_accommodation

        errors = _validation_errors(create_accommodation, {})

        assert set(errors) == {'name', 'type', 'max_capacity'}

    def test_capacity_bounds(self, app_ctx):
        from models.accommodation import create_accommodation

        errors = _validation_errors(create_accommodation, {
            'name': 'Hut', 'type': 'cottage', 'min_capacity': 4, 'max_capacity': 2,
        })

        assert errors == {'max_capacity': ['Maximum capacity cannot be below minimum capacity']}

    def test_duplicate_name(self, app_ctx):
        from models.accommodation import create_accommodation

        errors = _validation_errors(create_accommodation, {
            'name': 'cottage a', 'type': 'cottage', 'max_capacity': 4,
        })

        assert errors['name'] == ["An accommodation named 'cottage a' already exists"]


class TestUpdateAccommodation:

    def test_partial_update(self, app_ctx):
        from models.accommodation import update_accommodation

        updated = update_accommodation(COTTAGE_A, {'max_capacity': 8, 'unknown': 'x'})

        assert updated['max_capacity'] == 8
        assert updated['name'] == 'Cottage A'

    def test_max_checked_against_stored_min(self, app_ctx):
        from models.accommodation import update_accommodation

        errors = _validation_errors(update_accommodation, FAMILY_ROOM, {'max_capacity': 1})

        assert 'max_capacity' in errors

    def test_keeps_own_name(self, app_ctx):
        from models.accommodation import update_accommodation

        assert update_accommodation(COTTAGE_A, {'name': 'Cottage A'})['name'] == 'Cottage A'

    def test_missing(self, app_ctx):
        from models.accommodation import update_accommodation, deactivate_accommodation

        assert update_accommodation(999, {'name': 'X'}) is None
        assert deactivate_accommodation(999) is None


class TestDeactivateAccommodation:

    def test_removed_from_sale(self, app_ctx, overnight_booking_data):
        from models.accommodation import deactivate_accommodation, get_all_accommodations
        from models.booking import create_booking

        existing = create_booking(overnight_booking_data)

        assert deactivate_accommodation(COTTAGE_A)['status'] == 'inactive'
        assert COTTAGE_A not in [acc['id'] for acc in get_all_accommodations()]

        errors = _validation_errors(create_booking, overnight_booking_data)
        assert errors['accommodations.0.accommodation_id'] == [
            "Accommodation 'Cottage A' is not available for booking"
        ]

        from models.booking import get_booking_by_id
        assert get_booking_by_id(existing['id'])['status'] == 'pending'

    def test_reactivate(self, app_ctx):
        from models.accommodation import deactivate_accommodation, update_accommodation

        deactivate_accommodation(COTTAGE_A)

        assert update_accommodation(COTTAGE_A, {'status': 'active'})['status'] == 'active'

    def test_bad_status(self, app_ctx):
        from models.accommodation import update_accommodation

        errors = _validation_errors(update_accommodation, COTTAGE_A, {'status': 'closed'})

        assert errors == {'status': ['Status must be active or inactive']}


class TestRates:

    def test_add_day_tour_rate(self, app_ctx):
        from models.accommodation import create_rate, find_rate

        rate = create_rate(DELUXE_ROOM, {
            'booking_type': 'day_tour', 'rate': '3000', 'adult_entrance_fee': '100',
            'includes_free_entrance': 'true',
        })

        assert rate['rate'] == Decimal('3000.00')
        assert rate['adult_entrance_fee'] == Decimal('100.00')
        assert rate['child_entrance_fee'] == Decimal('0.00')
        assert rate['includes_free_entrance'] is True
        assert find_rate(DELUXE_ROOM, 'day_tour')['id'] == rate['id']

    def test_one_rate_per_booking_type(self, app_ctx):
        from models.accommodation import create_rate

        errors = _validation_errors(create_rate, COTTAGE_A,
                                    {'booking_type': 'overnight', 'rate': '2600'})

        assert errors == {
            'booking_type': ['A rate for this accommodation and booking type already exists.']
        }

    @pytest.mark.parametrize('data,field,message', [
        ({'booking_type': 'day_tour'}, 'rate', 'Rate is required'),
        ({'booking_type': 'day_tour', 'rate': '-1'}, 'rate', 'Amount cannot be negative'),
        ({'booking_type': 'day_tour', 'rate': 'abc'}, 'rate', 'Enter a valid amount'),
        ({'booking_type': 'weekly', 'rate': '100'}, 'booking_type',
         'Booking type must be day_tour or overnight'),
        ({'booking_type': 'day_tour', 'rate': '100', 'additional_pax_rate': '-5'},
         'additional_pax_rate', 'Amount cannot be negative'),
    ])
    def test_invalid(self, app_ctx, data, field, message):
        from models.accommodation import create_rate

        errors = _validation_errors(create_rate, DELUXE_ROOM, data)

        assert errors[field] == [message]

    def test_missing_accommodation(self, app_ctx):
        from models.accommodation import create_rate

        assert create_rate(999, {'booking_type': 'day_tour', 'rate': '100'}) is None

    def test_update_applies_to_new_bookings_only(self, app_ctx, overnight_booking_data):
        from models.accommodation import find_rate, update_rate
        from models.booking import create_booking, get_booking_by_id

        existing = create_booking(overnight_booking_data)
        rate = find_rate(COTTAGE_A, 'overnight')

        updated = update_rate(rate['id'], {'rate': '2800.00'})

        assert updated['rate'] == Decimal('2800.00')
        assert get_booking_by_id(existing['id'])['total_amount'] == Decimal('5300.00')

    def test_update_booking_type_collision(self, app_ctx):
        from models.accommodation import find_rate, update_rate

        rate = find_rate(COTTAGE_A, 'day_tour')

        errors = _validation_errors(update_rate, rate['id'], {'booking_type': 'overnight'})

        assert 'booking_type' in errors

    def test_deactivated_rate_is_not_offered(self, app_ctx, overnight_booking_data):
        from models.accommodation import deactivate_rate, find_rate
        from models.booking import create_booking

        rate = find_rate(COTTAGE_A, 'overnight')

        assert deactivate_rate(rate['id'])['status'] == 'inactive'
        errors = _validation_errors(create_booking, overnight_booking_data)
        assert errors['accommodations.0.accommodation_id'] == ["'Cottage A' has no overnight rate"]

    def test_missing_rate(self, app_ctx):
        from models.accommodation import update_rate, deactivate_rate

        assert update_rate(999, {'rate': '1'}) is None
        assert deactivate_rate(999) is None
