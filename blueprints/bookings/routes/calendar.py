"""
Calendar API routes.
"""

from flask import request
from flask_login import login_required, current_user

from models.booking_calendar import get_accommodations_for_date, get_month_overview
from utils.api_response import api_success, api_error
from utils.datetime_helpers import get_today, parse_date
from utils.decorators import permission_required


def register_routes(bp):
    """Register calendar routes on the blueprint."""

    @bp.route('/calendar', methods=['GET'])
    @login_required
    @permission_required('bookings.view')
    def calendar_day():
        """
        Occupancy of every active accommodation on a day, plus the month overview.

        Query params:
            date: YYYY-MM-DD (default: today)

        Customers see whether an accommodation is free, without the
        occupying booking's details.
        """
        try:
            selected = parse_date(request.args['date']) if request.args.get('date') else get_today()
        except ValueError:
            return api_error('Dates must use the YYYY-MM-DD format', status=400)

        accommodations = get_accommodations_for_date(selected)
        if not current_user.is_staff:
            for accommodation in accommodations:
                accommodation['booking'] = None

        return api_success(data={
            'selected_date': selected,
            'accommodations': accommodations,
            'month_overview': get_month_overview(selected),
        })
