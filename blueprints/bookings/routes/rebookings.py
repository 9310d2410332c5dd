"""
Rebooking API routes: request, review and completion.
"""

from flask import request, current_app
from flask_login import login_required, current_user

from models.rebooking import (
    InvalidStateTransitionError, get_rebooking_by_id, list_rebookings, create_rebooking,
    update_rebooking, approve_rebooking, reject_rebooking, cancel_rebooking,
    complete_rebooking, delete_rebooking,
)
from utils.api_response import api_success, api_error, api_validation_error
from utils.decorators import permission_required
from utils.messages import MESSAGES
from utils.validators import BookingValidationError
from blueprints.bookings.access import request_data, load_booking_for_user


def _load_rebooking_for_user(rebooking_id, include_details=True):
    """Rebooking whose original booking the current user may see, or None."""
    rebooking = get_rebooking_by_id(rebooking_id, include_details=include_details)
    if rebooking is None:
        return None
    if not load_booking_for_user(rebooking['original_booking_id'], include_details=False):
        return None
    return rebooking


def _run(rebooking_id, action, message_key, status=200):
    """Call a rebooking service and map its outcome to a JSON response."""
    try:
        rebooking = action()
    except InvalidStateTransitionError as e:
        return api_error(str(e), status=409, current_status=e.current_status)
    except BookingValidationError as e:
        return api_validation_error(e)
    except Exception as e:
        current_app.logger.error(f'Error processing rebooking {rebooking_id}: {e}', exc_info=True)
        return api_error(MESSAGES['internal_error'], status=500)

    if not rebooking:
        return api_error(MESSAGES['rebooking_not_found'], status=404)
    return api_success(data=rebooking, message=MESSAGES[message_key], status=status)


def register_routes(bp):
    """Register rebooking routes on the blueprint."""

    # ============================================================================
    # PER BOOKING
    # ============================================================================

    @bp.route('/bookings/<int:booking_id>/rebookings', methods=['GET'])
    @login_required
    @permission_required('rebookings.view')
    def rebookings_for_booking(booking_id):
        if not load_booking_for_user(booking_id, include_details=False):
            return api_error(MESSAGES['booking_not_found'], status=404)

        rebookings = list_rebookings(booking_id=booking_id,
                                     status=request.args.get('status') or None)
        return api_success(data=rebookings, count=len(rebookings))

    @bp.route('/bookings/<int:booking_id>/rebookings', methods=['POST'])
    @login_required
    @permission_required('rebookings.create')
    def rebookings_create(booking_id):
        """
        Request a rebooking.

        Request body:
            new_check_in_date, new_check_out_date, new_total_adults,
            new_total_children, accommodations, reason
        """
        if not load_booking_for_user(booking_id, include_details=False):
            return api_error(MESSAGES['booking_not_found'], status=404)

        return _run(
            booking_id,
            lambda: create_rebooking(booking_id, request_data(), processed_by=current_user.id),
            'rebooking_created',
            status=201,
        )

    # ============================================================================
    # SINGLE REBOOKING
    # ============================================================================

    @bp.route('/rebookings', methods=['GET'])
    @login_required
    @permission_required('rebookings.approve')
    def rebookings_list():
        """Review queue. Query params: status."""
        rebookings = list_rebookings(status=request.args.get('status') or None)
        return api_success(data=rebookings, count=len(rebookings))

    @bp.route('/rebookings/<int:rebooking_id>', methods=['GET'])
    @login_required
    @permission_required('rebookings.view')
    def rebookings_detail(rebooking_id):
        rebooking = _load_rebooking_for_user(rebooking_id)
        if not rebooking:
            return api_error(MESSAGES['rebooking_not_found'], status=404)
        return api_success(data=rebooking)

    @bp.route('/rebookings/<int:rebooking_id>', methods=['PUT', 'PATCH'])
    @login_required
    @permission_required('rebookings.create')
    def rebookings_update(rebooking_id):
        """Change a pending request."""
        if not _load_rebooking_for_user(rebooking_id, include_details=False):
            return api_error(MESSAGES['rebooking_not_found'], status=404)
        return _run(rebooking_id, lambda: update_rebooking(rebooking_id, request_data()),
                    'rebooking_updated')

    @bp.route('/rebookings/<int:rebooking_id>', methods=['DELETE'])
    @login_required
    @permission_required('rebookings.approve')
    def rebookings_delete(rebooking_id):
        try:
            deleted = delete_rebooking(rebooking_id)
        except InvalidStateTransitionError as e:
            return api_error(str(e), status=409, current_status=e.current_status)
        except Exception as e:
            current_app.logger.error(f'Error deleting rebooking {rebooking_id}: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not deleted:
            return api_error(MESSAGES['rebooking_not_found'], status=404)
        return api_success(message=MESSAGES['rebooking_deleted'])

    # ============================================================================
    # WORKFLOW
    # ============================================================================

    @bp.route('/rebookings/<int:rebooking_id>/approve', methods=['POST'])
    @login_required
    @permission_required('rebookings.approve')
    def rebookings_approve(rebooking_id):
        """Approve with an optional rebooking_fee and admin_notes."""
        data = request_data()
        return _run(
            rebooking_id,
            lambda: approve_rebooking(rebooking_id,
                                      rebooking_fee=data.get('rebooking_fee', 0),
                                      admin_notes=data.get('admin_notes'),
                                      approved_by=current_user.id),
            'rebooking_approved',
        )

    @bp.route('/rebookings/<int:rebooking_id>/reject', methods=['POST'])
    @login_required
    @permission_required('rebookings.approve')
    def rebookings_reject(rebooking_id):
        data = request_data()
        return _run(rebooking_id,
                    lambda: reject_rebooking(rebooking_id, admin_notes=data.get('admin_notes')),
                    'rebooking_rejected')

    @bp.route('/rebookings/<int:rebooking_id>/cancel', methods=['POST'])
    @login_required
    @permission_required('rebookings.create')
    def rebookings_cancel(rebooking_id):
        if not _load_rebooking_for_user(rebooking_id, include_details=False):
            return api_error(MESSAGES['rebooking_not_found'], status=404)
        return _run(rebooking_id, lambda: cancel_rebooking(rebooking_id), 'rebooking_cancelled')

    @bp.route('/rebookings/<int:rebooking_id>/complete', methods=['POST'])
    @login_required
    @permission_required('rebookings.approve')
    def rebookings_complete(rebooking_id):
        """Apply a settled rebooking to its booking."""
        return _run(rebooking_id, lambda: complete_rebooking(rebooking_id), 'rebooking_completed')
