"""
Tests for the rebooking workflow: request, approve, settle, complete.
"""

import pytest
from decimal import Decimal

from conftest import COTTAGE_A, COTTAGE_B
from utils.validators import BookingValidationError


@pytest.fixture
def booking(app_ctx, overnight_booking_data):
    """Cottage A, two nights from day 30, two adults: 5300.00."""
    from models.booking import create_booking
    return create_booking(overnight_booking_data)


@pytest.fixture
def request_data(future):
    """Move to Cottage A for three nights from day 40: 7800.00."""
    def _request_data(check_in=40, nights=3, accommodation_id=COTTAGE_A, adults=2):
        return {
            'new_check_in_date': future(check_in).isoformat(),
            'new_check_out_date': future(check_in + nights).isoformat(),
            'new_total_adults': adults,
            'new_total_children': 0,
            'accommodations': [{'accommodation_id': accommodation_id, 'guests': adults}],
            'reason': 'Flight moved',
        }
    return _request_data


def _rebook(booking_id, data, **kwargs):
    from models.rebooking import create_rebooking
    return create_rebooking(booking_id, data, **kwargs)


def _pay(booking_id, amount, **extra):
    from models.payment import create_payment
    return create_payment(booking_id, {'amount': amount, 'payment_method': 'cash', **extra})


class TestCreateRebooking:

    def test_prices_the_request(self, booking, request_data):
        from utils.datetime_helpers import get_today

        rebooking = _rebook(booking['id'], request_data(), processed_by=1)

        assert rebooking['rebooking_number'] == f"RB-{get_today().strftime('%Y%m')}-0001"
        assert rebooking['status'] == 'pending'
        assert rebooking['payment_status'] == 'pending'
        assert rebooking['original_amount'] == Decimal('5300.00')
        assert rebooking['new_amount'] == Decimal('7800.00')
        assert rebooking['amount_difference'] == Decimal('2500.00')
        assert rebooking['rebooking_fee'] == Decimal('0.00')
        assert rebooking['total_adjustment'] == Decimal('2500.00')
        assert rebooking['reason'] == 'Flight moved'
        assert rebooking['accommodations'][0]['accommodation_name'] == 'Cottage A'
        assert rebooking['original_booking']['booking_number'] == booking['booking_number']

    def test_overlapping_own_dates_allowed(self, booking, request_data):
        """The original booking does not conflict with its own rebooking."""
        rebooking = _rebook(booking['id'], request_data(check_in=31, nights=2))

        assert rebooking['status'] == 'pending'

    def test_missing_booking(self, app_ctx, request_data):
        assert _rebook(999, request_data()) is None

    def test_only_one_active_rebooking(self, booking, request_data):
        _rebook(booking['id'], request_data())

        with pytest.raises(BookingValidationError) as exc_info:
            _rebook(booking['id'], request_data(check_in=50))

        assert 'already has a pending or approved rebooking' in exc_info.value.errors['booking'][0]

    def test_cancelled_booking(self, booking, request_data):
        from models.booking import cancel_booking

        cancel_booking(booking['id'], 'Guest cancelled')

        with pytest.raises(BookingValidationError) as exc_info:
            _rebook(booking['id'], request_data())

        assert 'Only pending or confirmed bookings' in exc_info.value.errors['booking'][0]

    def test_after_check_in_date(self, app, booking_factory, future):
        booking_id = booking_factory(check_in=future(-2).isoformat(),
                                     check_out=future(1).isoformat())

        with app.app_context():
            with pytest.raises(BookingValidationError) as exc_info:
                _rebook(booking_id, {
                    'new_check_in_date': future(10).isoformat(),
                    'new_check_out_date': future(12).isoformat(),
                    'new_total_adults': 2,
                    'accommodations': [{'accommodation_id': COTTAGE_A, 'guests': 2}],
                })

        assert 'before their check-in date' in exc_info.value.errors['booking'][0]

    def test_new_check_in_must_be_future(self, booking, request_data):
        data = request_data()
        data['new_check_in_date'] = '2020-01-01'

        with pytest.raises(BookingValidationError) as exc_info:
            _rebook(booking['id'], data)

        assert exc_info.value.errors['new_check_in_date'] == ['New check-in date must be in the future']

    def test_conflict_with_other_booking(self, booking, overnight_booking_data, request_data, future):
        from models.booking import create_booking

        create_booking({**overnight_booking_data,
                        'check_in_date': future(41).isoformat(),
                        'check_out_date': future(42).isoformat()})

        with pytest.raises(BookingValidationError) as exc_info:
            _rebook(booking['id'], request_data())

        assert 'is not available' in exc_info.value.errors['accommodations'][0]

    def test_guest_sum_checked(self, booking, request_data):
        data = request_data()
        data['new_total_adults'] = 3

        with pytest.raises(BookingValidationError) as exc_info:
            _rebook(booking['id'], data)

        assert 'accommodations' in exc_info.value.errors


class TestUpdateRebooking:

    def test_reprices_pending(self, booking, request_data):
        from models.rebooking import update_rebooking

        rebooking = _rebook(booking['id'], request_data())

        updated = update_rebooking(rebooking['id'], request_data(nights=2))

        assert updated['new_amount'] == Decimal('5300.00')
        assert updated['total_adjustment'] == Decimal('0.00')
        assert updated['payment_status'] == 'paid'

    def test_approved_cannot_be_edited(self, booking, request_data):
        from models.rebooking import update_rebooking, approve_rebooking, InvalidStateTransitionError

        rebooking = _rebook(booking['id'], request_data())
        approve_rebooking(rebooking['id'])

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            update_rebooking(rebooking['id'], request_data(nights=2))

        assert exc_info.value.current_status == 'approved'


class TestApproveRebooking:

    def test_fee_sets_adjustment(self, booking, request_data):
        from models.rebooking import approve_rebooking

        rebooking = _rebook(booking['id'], request_data())

        approved = approve_rebooking(rebooking['id'], rebooking_fee='500', admin_notes='OK',
                                     approved_by=1)

        assert approved['status'] == 'approved'
        assert approved['rebooking_fee'] == Decimal('500.00')
        assert approved['total_adjustment'] == Decimal('3000.00')
        assert approved['remaining_payment_due'] == Decimal('3000.00')
        assert approved['payment_status'] == 'pending'
        assert approved['admin_notes'] == 'OK'
        assert approved['approved_at'] is not None

    def test_negative_fee(self, booking, request_data):
        from models.rebooking import approve_rebooking

        rebooking = _rebook(booking['id'], request_data())

        with pytest.raises(BookingValidationError) as exc_info:
            approve_rebooking(rebooking['id'], rebooking_fee='-1')

        assert 'rebooking_fee' in exc_info.value.errors

    def test_only_pending(self, booking, request_data):
        from models.rebooking import approve_rebooking, InvalidStateTransitionError

        rebooking = _rebook(booking['id'], request_data())
        approve_rebooking(rebooking['id'])

        with pytest.raises(InvalidStateTransitionError):
            approve_rebooking(rebooking['id'])

    def test_rechecks_availability(self, app, booking, request_data, booking_factory, future):
        """A booking taken on the new dates after the request blocks approval."""
        from models.rebooking import approve_rebooking

        rebooking = _rebook(booking['id'], request_data())
        booking_factory(check_in=future(41).isoformat(), check_out=future(42).isoformat())

        with pytest.raises(BookingValidationError) as exc_info:
            approve_rebooking(rebooking['id'])

        assert 'accommodations' in exc_info.value.errors

    def test_moves_the_hold(self, booking, overnight_booking_data, request_data, future):
        """After approval the original dates are free and the new dates are held."""
        from models.booking import create_booking
        from models.rebooking import approve_rebooking

        rebooking = _rebook(booking['id'], request_data())
        approve_rebooking(rebooking['id'])

        freed = create_booking(overnight_booking_data)
        assert freed['id'] != booking['id']

        with pytest.raises(BookingValidationError) as exc_info:
            create_booking({**overnight_booking_data,
                            'check_in_date': future(42).isoformat(),
                            'check_out_date': future(44).isoformat()})

        message = exc_info.value.errors['accommodations'][0]
        assert f"rebooking {rebooking['rebooking_number']} (originally {booking['booking_number']})" in message

    def test_missing(self, app_ctx):
        from models.rebooking import approve_rebooking

        assert approve_rebooking(999) is None


class TestRejectAndCancel:

    def test_reject_pending(self, booking, request_data):
        from models.rebooking import reject_rebooking

        rebooking = _rebook(booking['id'], request_data())

        rejected = reject_rebooking(rebooking['id'], admin_notes='Fully booked that week')

        assert rejected['status'] == 'cancelled'
        assert rejected['admin_notes'] == 'Fully booked that week'

    def test_reject_approved_fails(self, booking, request_data):
        from models.rebooking import approve_rebooking, reject_rebooking, InvalidStateTransitionError

        rebooking = _rebook(booking['id'], request_data())
        approve_rebooking(rebooking['id'])

        with pytest.raises(InvalidStateTransitionError):
            reject_rebooking(rebooking['id'])

    def test_cancel_approved(self, booking, request_data):
        from models.rebooking import approve_rebooking, cancel_rebooking

        rebooking = _rebook(booking['id'], request_data())
        approve_rebooking(rebooking['id'])

        assert cancel_rebooking(rebooking['id'])['status'] == 'cancelled'

    def test_cancel_twice_fails(self, booking, request_data):
        from models.rebooking import cancel_rebooking, InvalidStateTransitionError

        rebooking = _rebook(booking['id'], request_data())
        cancel_rebooking(rebooking['id'])

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            cancel_rebooking(rebooking['id'])

        assert str(exc_info.value) == 'Cannot cancel a rebooking that is cancelled'

    def test_new_request_after_cancel(self, booking, request_data):
        from models.rebooking import cancel_rebooking

        cancel_rebooking(_rebook(booking['id'], request_data())['id'])

        assert _rebook(booking['id'], request_data(check_in=50))['status'] == 'pending'


class TestCompleteRebooking:

    def test_upgrade_needs_payment(self, booking, request_data):
        from models.rebooking import approve_rebooking, complete_rebooking

        rebooking = _rebook(booking['id'], request_data())
        approve_rebooking(rebooking['id'], rebooking_fee='500.00')

        with pytest.raises(BookingValidationError) as exc_info:
            complete_rebooking(rebooking['id'])

        assert exc_info.value.errors['payment'] == ['Payment of 3000.00 is still required']

    def test_upgrade_applies_new_stay(self, booking, request_data, future):
        from models.booking import get_booking_by_id
        from models.rebooking import approve_rebooking, complete_rebooking

        rebooking = _rebook(booking['id'], request_data())
        approve_rebooking(rebooking['id'], rebooking_fee='500.00')
        _pay(booking['id'], '3000.00', rebooking_id=rebooking['id'])

        completed = complete_rebooking(rebooking['id'])
        updated = get_booking_by_id(booking['id'])

        assert completed['status'] == 'completed'
        assert completed['payment_status'] == 'paid'
        assert completed['completed_at'] is not None
        assert updated['check_in_date'] == future(40)
        assert updated['check_out_date'] == future(43)
        assert updated['accommodation_total'] == Decimal('7500.00')
        assert updated['total_amount'] == Decimal('8300.00')
        assert updated['paid_amount'] == Decimal('3000.00')
        assert updated['balance'] == Decimal('5300.00')

    def test_downgrade_needs_refund(self, booking, request_data):
        from models.booking import get_booking_by_id
        from models.rebooking import approve_rebooking, complete_rebooking
        from models.refund import create_refund

        payment = _pay(booking['id'], '5300.00')
        rebooking = _rebook(booking['id'], request_data(nights=2, accommodation_id=COTTAGE_B))
        approve_rebooking(rebooking['id'], rebooking_fee='200.00')

        with pytest.raises(BookingValidationError) as exc_info:
            complete_rebooking(rebooking['id'])
        assert exc_info.value.errors['refund'] == ['Refund of 800.00 is still required']

        create_refund(payment['id'], {'amount': '800.00', 'refund_method': 'cash',
                                      'rebooking_id': rebooking['id']})
        completed = complete_rebooking(rebooking['id'])
        updated = get_booking_by_id(booking['id'])

        assert completed['payment_status'] == 'refunded'
        assert updated['total_amount'] == Decimal('4500.00')
        assert updated['paid_amount'] == Decimal('4500.00')
        assert updated['is_fully_paid'] is True
        assert [line['accommodation_id'] for line in updated['accommodations']] == [COTTAGE_B]

    def test_zero_adjustment_completes_immediately(self, booking, request_data):
        from models.rebooking import approve_rebooking, complete_rebooking

        rebooking = _rebook(booking['id'], request_data(nights=2))
        approve_rebooking(rebooking['id'])

        assert complete_rebooking(rebooking['id'])['status'] == 'completed'

    def test_pending_cannot_complete(self, booking, request_data):
        from models.rebooking import complete_rebooking, InvalidStateTransitionError

        rebooking = _rebook(booking['id'], request_data(nights=2))

        with pytest.raises(InvalidStateTransitionError):
            complete_rebooking(rebooking['id'])

    def test_completed_frees_booking_for_another_rebooking(self, booking, request_data):
        from models.rebooking import approve_rebooking, complete_rebooking

        rebooking = _rebook(booking['id'], request_data(nights=2))
        approve_rebooking(rebooking['id'])
        complete_rebooking(rebooking['id'])

        assert _rebook(booking['id'], request_data(check_in=60, nights=2))['status'] == 'pending'

    def test_checked_in_booking_keeps_its_stay(self, booking, request_data):
        """A guest who already arrived cannot have the stay rewritten."""
        from models.booking import confirm_booking, check_in_booking, get_booking_by_id
        from models.rebooking import approve_rebooking, complete_rebooking, get_rebooking_by_id

        confirm_booking(booking['id'])
        rebooking = _rebook(booking['id'], request_data(nights=2))
        approve_rebooking(rebooking['id'])
        check_in_booking(booking['id'])

        with pytest.raises(BookingValidationError) as exc_info:
            complete_rebooking(rebooking['id'])

        assert exc_info.value.errors['booking'] == [
            'The original booking is checked in and can no longer be rebooked'
        ]
        unchanged = get_booking_by_id(booking['id'])
        assert unchanged['check_in_date'] == booking['check_in_date']
        assert unchanged['total_amount'] == Decimal('5300.00')
        assert get_rebooking_by_id(rebooking['id'])['status'] == 'approved'


class TestBookingCancellation:
    """Cancelling a booking ends its open rebookings."""

    def test_cancel_booking_cancels_pending_rebooking(self, booking, request_data):
        from models.booking import cancel_booking
        from models.rebooking import (
            approve_rebooking, complete_rebooking, get_rebooking_by_id, InvalidStateTransitionError,
        )

        rebooking = _rebook(booking['id'], request_data(nights=2))
        cancel_booking(booking['id'], 'Guest cancelled')

        assert get_rebooking_by_id(rebooking['id'])['status'] == 'cancelled'
        with pytest.raises(InvalidStateTransitionError):
            approve_rebooking(rebooking['id'])
        with pytest.raises(InvalidStateTransitionError):
            complete_rebooking(rebooking['id'])

    def test_cancel_through_update_cancels_approved_rebooking(self, booking, request_data):
        from models.booking import update_booking
        from models.rebooking import approve_rebooking, get_rebooking_by_id

        rebooking = _rebook(booking['id'], request_data(nights=2))
        approve_rebooking(rebooking['id'])

        update_booking(booking['id'], {'status': 'cancelled', 'cancellation_reason': 'No show'})

        assert get_rebooking_by_id(rebooking['id'])['status'] == 'cancelled'

    def test_completed_rebooking_untouched(self, booking, request_data):
        from models.booking import cancel_booking
        from models.rebooking import approve_rebooking, complete_rebooking, get_rebooking_by_id

        rebooking = _rebook(booking['id'], request_data(nights=2))
        approve_rebooking(rebooking['id'])
        complete_rebooking(rebooking['id'])

        cancel_booking(booking['id'], 'Guest cancelled')

        assert get_rebooking_by_id(rebooking['id'])['status'] == 'completed'

    def test_approve_needs_open_booking(self, app, booking_factory, rebooking_factory):
        """Rebookings left pending on a closed booking cannot be approved."""
        from models.rebooking import approve_rebooking

        booking_id = booking_factory(status='checked_out')
        rebooking_id = rebooking_factory(booking_id, status='pending')

        with app.app_context():
            with pytest.raises(BookingValidationError) as exc_info:
                approve_rebooking(rebooking_id)

        assert exc_info.value.errors['booking'] == [
            'The original booking is checked out and can no longer be rebooked'
        ]


class TestListAndDelete:

    def test_list_filters(self, booking, request_data):
        from models.rebooking import list_rebookings, cancel_rebooking

        first = _rebook(booking['id'], request_data())
        cancel_rebooking(first['id'])
        second = _rebook(booking['id'], request_data(check_in=50))

        assert [r['id'] for r in list_rebookings(booking_id=booking['id'])] == [second['id'], first['id']]
        assert [r['id'] for r in list_rebookings(status='pending')] == [second['id']]
        assert list_rebookings(booking_id=999) == []

    def test_delete_drops_linked_payments(self, booking, request_data):
        from models.booking import get_booking_by_id
        from models.rebooking import approve_rebooking, delete_rebooking, get_rebooking_by_id

        rebooking = _rebook(booking['id'], request_data())
        approve_rebooking(rebooking['id'])
        _pay(booking['id'], '1000.00', rebooking_id=rebooking['id'])
        _pay(booking['id'], '500.00')

        assert delete_rebooking(rebooking['id']) is True
        assert get_rebooking_by_id(rebooking['id']) is None
        assert get_booking_by_id(booking['id'])['paid_amount'] == Decimal('500.00')

    def test_completed_cannot_be_deleted(self, booking, request_data):
        from models.rebooking import (
            approve_rebooking, complete_rebooking, delete_rebooking, InvalidStateTransitionError,
        )

        rebooking = _rebook(booking['id'], request_data(nights=2))
        approve_rebooking(rebooking['id'])
        complete_rebooking(rebooking['id'])

        with pytest.raises(InvalidStateTransitionError):
            delete_rebooking(rebooking['id'])

    def test_delete_missing(self, app_ctx):
        from models.rebooking import delete_rebooking

        assert delete_rebooking(999) is False
