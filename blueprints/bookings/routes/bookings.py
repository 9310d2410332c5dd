"""
Booking API routes: CRUD, lookup by code and status changes.
"""

from flask import request, current_app
from flask_login import login_required, current_user

from models.booking import (
    create_booking, update_booking, delete_booking, list_bookings, get_booking_by_code,
    confirm_booking, cancel_booking, check_in_booking, check_out_booking,
    get_allowed_transitions,
)
from utils.api_response import api_success, api_error, api_validation_error
from utils.decorators import permission_required
from utils.messages import MESSAGES
from utils.validators import BookingValidationError
from blueprints.bookings.access import request_data, can_access_booking, load_booking_for_user


def register_routes(bp):
    """Register booking routes on the blueprint."""

    # ============================================================================
    # LIST / CREATE
    # ============================================================================

    @bp.route('/bookings', methods=['GET'])
    @login_required
    @permission_required('bookings.view')
    def bookings_list():
        """
        List bookings.

        Query params:
            status, source, booking_type, search, date_from, date_to

        Customers only get the bookings they created.
        """
        try:
            bookings = list_bookings(
                status=request.args.get('status') or None,
                source=request.args.get('source') or None,
                booking_type=request.args.get('booking_type') or None,
                search=request.args.get('search') or None,
                created_by=None if current_user.is_staff else current_user.id,
                date_from=request.args.get('date_from') or None,
                date_to=request.args.get('date_to') or None,
            )
        except ValueError:
            return api_error('Dates must use the YYYY-MM-DD format', status=400)

        return api_success(data=bookings, count=len(bookings))

    @bp.route('/bookings', methods=['POST'])
    @login_required
    @permission_required('bookings.create')
    def bookings_create():
        """Create a booking from JSON."""
        data = request_data()

        if not current_user.is_staff:
            # Customers book for themselves and wait for confirmation
            data['source'] = 'registered'
            data.pop('status', None)
        elif not data.get('source'):
            data['source'] = 'walk_in'

        try:
            booking = create_booking(data, created_by=current_user.id)
        except BookingValidationError as e:
            return api_validation_error(e)
        except Exception as e:
            current_app.logger.error(f'Error creating booking: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        return api_success(data=booking, message=MESSAGES['booking_created'], status=201)

    # ============================================================================
    # DETAIL / UPDATE / DELETE
    # ============================================================================

    @bp.route('/bookings/<int:booking_id>', methods=['GET'])
    @login_required
    @permission_required('bookings.view')
    def bookings_detail(booking_id):
        """Booking with lines, fees and allowed next statuses."""
        booking = load_booking_for_user(booking_id)
        if not booking:
            return api_error(MESSAGES['booking_not_found'], status=404)

        booking['allowed_transitions'] = get_allowed_transitions(booking['status'])
        return api_success(data=booking)

    @bp.route('/bookings/lookup/<string:booking_code>', methods=['GET'])
    @login_required
    @permission_required('bookings.view')
    def bookings_lookup(booking_code):
        """Find a booking by its guest-facing code."""
        booking = get_booking_by_code(booking_code)
        if not booking or not can_access_booking(booking):
            return api_error(MESSAGES['booking_not_found'], status=404)
        return api_success(data=booking)

    @bp.route('/bookings/<int:booking_id>', methods=['PUT', 'PATCH'])
    @login_required
    @permission_required('bookings.edit')
    def bookings_update(booking_id):
        """Update guest details, dates, down payment or status."""
        try:
            booking = update_booking(booking_id, request_data())
        except BookingValidationError as e:
            return api_validation_error(e)
        except Exception as e:
            current_app.logger.error(f'Error updating booking {booking_id}: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not booking:
            return api_error(MESSAGES['booking_not_found'], status=404)
        return api_success(data=booking, message=MESSAGES['booking_updated'])

    @bp.route('/bookings/<int:booking_id>', methods=['DELETE'])
    @login_required
    @permission_required('bookings.delete')
    def bookings_delete(booking_id):
        """Delete a booking and everything attached to it."""
        try:
            deleted = delete_booking(booking_id)
        except Exception as e:
            current_app.logger.error(f'Error deleting booking {booking_id}: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not deleted:
            return api_error(MESSAGES['booking_not_found'], status=404)
        return api_success(message=MESSAGES['booking_deleted'])

    # ============================================================================
    # STATUS CHANGES
    # ============================================================================

    def _status_change(booking_id, action, message_key):
        try:
            booking = action()
        except BookingValidationError as e:
            return api_validation_error(e)
        except Exception as e:
            current_app.logger.error(f'Error changing status of booking {booking_id}: {e}',
                                     exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not booking:
            return api_error(MESSAGES['booking_not_found'], status=404)
        return api_success(data=booking, message=MESSAGES[message_key])

    @bp.route('/bookings/<int:booking_id>/confirm', methods=['POST'])
    @login_required
    @permission_required('bookings.change_state')
    def bookings_confirm(booking_id):
        """pending -> confirmed."""
        return _status_change(booking_id, lambda: confirm_booking(booking_id), 'booking_confirmed')

    @bp.route('/bookings/<int:booking_id>/cancel', methods=['POST'])
    @login_required
    @permission_required('bookings.change_state')
    def bookings_cancel(booking_id):
        """Cancel with a required cancellation_reason."""
        data = request_data()
        reason = data.get('cancellation_reason') or data.get('reason')
        return _status_change(booking_id, lambda: cancel_booking(booking_id, reason),
                              'booking_cancelled')

    @bp.route('/bookings/<int:booking_id>/check-in', methods=['POST'])
    @login_required
    @permission_required('bookings.change_state')
    def bookings_check_in(booking_id):
        return _status_change(booking_id, lambda: check_in_booking(booking_id), 'booking_checked_in')

    @bp.route('/bookings/<int:booking_id>/check-out', methods=['POST'])
    @login_required
    @permission_required('bookings.change_state')
    def bookings_check_out(booking_id):
        return _status_change(booking_id, lambda: check_out_booking(booking_id),
                              'booking_checked_out')
