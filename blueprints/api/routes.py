"""
API routes for JSON endpoints.
Health check, accommodation catalogue and accommodation management.
"""

from flask import jsonify, request, current_app, Blueprint
from flask_login import login_required

from models.accommodation import (
    get_all_accommodations, get_accommodation_by_id, get_rates_for_accommodation,
    create_accommodation, update_accommodation, deactivate_accommodation,
    create_rate, update_rate, deactivate_rate,
)
from utils.api_response import api_success, api_error, api_validation_error
from utils.decorators import permission_required
from utils.messages import MESSAGES
from utils.validators import BookingValidationError

api_bp = Blueprint('api', __name__)


@api_bp.route('/health')
def health_check():
    """
    Health check endpoint (no authentication required).

    Returns:
        JSON with status and version
    """
    return jsonify({
        'status': 'ok',
        'version': current_app.config.get('APP_VERSION', '1.0.0'),
        'app': current_app.config.get('APP_NAME', 'Resort Booking')
    })


@api_bp.route('/accommodations')
@login_required
@permission_required('accommodations.view')
def api_accommodations():
    """
    Get accommodations with their rates.

    Query params:
        active: Only active accommodations (optional, default: true)

    Returns:
        JSON list of accommodations
    """
    active_only = request.args.get('active', 'true').lower() == 'true'
    accommodations = get_all_accommodations(active_only=active_only, include_rates=True)

    return api_success(data=accommodations, count=len(accommodations))


@api_bp.route('/accommodations/<int:accommodation_id>')
@login_required
@permission_required('accommodations.view')
def api_accommodation_detail(accommodation_id):
    """
    Get single accommodation with its rates (active only unless ?active=false).

    Args:
        accommodation_id: Accommodation ID
    """
    accommodation = get_accommodation_by_id(accommodation_id)

    if not accommodation:
        return api_error(MESSAGES['accommodation_not_found'], status=404)

    active_only = request.args.get('active', 'true').lower() == 'true'
    accommodation['rates'] = get_rates_for_accommodation(accommodation_id, active_only=active_only)
    return api_success(data=accommodation)


# =============================================================================
# ACCOMMODATION MANAGEMENT
# =============================================================================

def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _run_management(action, not_found_message, status=200):
    """Call a management service and map its outcome to a JSON response."""
    try:
        result = action()
    except BookingValidationError as e:
        return api_validation_error(e)
    except Exception as e:
        current_app.logger.error(f'Error managing accommodations: {e}', exc_info=True)
        return api_error(MESSAGES['internal_error'], status=500)

    if not result:
        return api_error(not_found_message, status=404)
    return api_success(data=result, status=status)


@api_bp.route('/accommodations', methods=['POST'])
@login_required
@permission_required('accommodations.manage')
def api_accommodation_create():
    """Create an accommodation."""
    return _run_management(lambda: create_accommodation(_json_body()),
                           MESSAGES['accommodation_not_found'], status=201)


@api_bp.route('/accommodations/<int:accommodation_id>', methods=['PUT', 'PATCH'])
@login_required
@permission_required('accommodations.manage')
def api_accommodation_update(accommodation_id):
    """Update an accommodation, including setting it back to active."""
    return _run_management(lambda: update_accommodation(accommodation_id, _json_body()),
                           MESSAGES['accommodation_not_found'])


@api_bp.route('/accommodations/<int:accommodation_id>', methods=['DELETE'])
@login_required
@permission_required('accommodations.manage')
def api_accommodation_deactivate(accommodation_id):
    """Deactivate an accommodation; its bookings are kept."""
    return _run_management(lambda: deactivate_accommodation(accommodation_id),
                           MESSAGES['accommodation_not_found'])


@api_bp.route('/accommodations/<int:accommodation_id>/rates', methods=['POST'])
@login_required
@permission_required('accommodations.manage')
def api_rate_create(accommodation_id):
    """Add a rate to an accommodation."""
    return _run_management(lambda: create_rate(accommodation_id, _json_body()),
                           MESSAGES['accommodation_not_found'], status=201)


@api_bp.route('/rates/<int:rate_id>', methods=['PUT', 'PATCH'])
@login_required
@permission_required('accommodations.manage')
def api_rate_update(rate_id):
    """Update a rate."""
    return _run_management(lambda: update_rate(rate_id, _json_body()), MESSAGES['rate_not_found'])


@api_bp.route('/rates/<int:rate_id>', methods=['DELETE'])
@login_required
@permission_required('accommodations.manage')
def api_rate_deactivate(rate_id):
    """Deactivate a rate."""
    return _run_management(lambda: deactivate_rate(rate_id), MESSAGES['rate_not_found'])
