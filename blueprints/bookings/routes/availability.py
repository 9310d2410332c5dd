"""
Availability API routes.
"""

from flask import request
from flask_login import login_required

from models.booking import check_availability, format_conflict_messages
from utils.api_response import api_success, api_error
from utils.datetime_helpers import parse_date
from utils.decorators import permission_required


def register_routes(bp):
    """Register availability routes on the blueprint."""

    @bp.route('/availability/check', methods=['POST'])
    @login_required
    @permission_required('bookings.view')
    def availability_check():
        """
        Check accommodations for conflicting bookings.

        Request body:
            accommodation_ids: list of accommodation IDs
            check_in_date: YYYY-MM-DD
            check_out_date: YYYY-MM-DD (omit for a day tour)
            exclude_booking_id: booking being edited (optional)

        Returns:
            JSON with conflicts, messages and available flag
        """
        data = request.get_json(silent=True) or {}

        accommodation_ids = data.get('accommodation_ids')
        if not isinstance(accommodation_ids, list) or not accommodation_ids:
            return api_error('accommodation_ids must be a non-empty list', status=400)

        try:
            check_in = parse_date(data.get('check_in_date'))
            check_out = parse_date(data['check_out_date']) if data.get('check_out_date') else None
        except ValueError:
            return api_error('Dates must use the YYYY-MM-DD format', status=400)

        if check_out is not None and check_out < check_in:
            return api_error('Check-out date cannot be before check-in date', status=400)

        exclude_booking_id = data.get('exclude_booking_id')
        if exclude_booking_id is not None and not isinstance(exclude_booking_id, int):
            return api_error('exclude_booking_id must be an integer', status=400)

        conflicts = check_availability(accommodation_ids, check_in, check_out,
                                       exclude_booking_id=exclude_booking_id)

        return api_success(
            data={
                'conflicts': conflicts,
                'messages': format_conflict_messages(conflicts),
                'available': not conflicts,
            }
        )
