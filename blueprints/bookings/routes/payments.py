"""
Payment API routes.
Accepts JSON, or multipart form data when a reference image is attached.
"""

from flask import current_app
from flask_login import login_required, current_user

from models.payment import (
    get_payment_by_id, get_payments_for_booking, create_payment, update_payment, delete_payment,
)
from utils.api_response import api_success, api_error, api_validation_error
from utils.decorators import permission_required
from utils.messages import MESSAGES
from utils.validators import BookingValidationError
from blueprints.bookings.access import request_data, uploaded_image, load_booking_for_user


def register_routes(bp):
    """Register payment routes on the blueprint."""

    @bp.route('/bookings/<int:booking_id>/payments', methods=['GET'])
    @login_required
    @permission_required('payments.view')
    def payments_list(booking_id):
        """Payments of a booking with refunded amounts."""
        booking = load_booking_for_user(booking_id, include_details=False)
        if not booking:
            return api_error(MESSAGES['booking_not_found'], status=404)

        payments = get_payments_for_booking(booking_id)
        return api_success(
            data=payments,
            count=len(payments),
            paid_amount=booking['paid_amount'],
            balance=booking['balance'],
        )

    @bp.route('/bookings/<int:booking_id>/payments', methods=['POST'])
    @login_required
    @permission_required('payments.manage')
    def payments_create(booking_id):
        """Record a payment, optionally tied to a rebooking."""
        try:
            payment = create_payment(booking_id, request_data(),
                                     received_by=current_user.id,
                                     reference_image=uploaded_image())
        except BookingValidationError as e:
            return api_validation_error(e)
        except Exception as e:
            current_app.logger.error(f'Error recording payment for booking {booking_id}: {e}',
                                     exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not payment:
            return api_error(MESSAGES['booking_not_found'], status=404)
        return api_success(data=payment, message=MESSAGES['payment_recorded'], status=201)

    @bp.route('/payments/<int:payment_id>', methods=['GET'])
    @login_required
    @permission_required('payments.view')
    def payments_detail(payment_id):
        payment = get_payment_by_id(payment_id)
        if not payment:
            return api_error(MESSAGES['payment_not_found'], status=404)
        return api_success(data=payment)

    @bp.route('/payments/<int:payment_id>', methods=['PUT', 'PATCH'])
    @login_required
    @permission_required('payments.manage')
    def payments_update(payment_id):
        try:
            payment = update_payment(payment_id, request_data(), reference_image=uploaded_image())
        except BookingValidationError as e:
            return api_validation_error(e)
        except Exception as e:
            current_app.logger.error(f'Error updating payment {payment_id}: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not payment:
            return api_error(MESSAGES['payment_not_found'], status=404)
        return api_success(data=payment, message=MESSAGES['payment_updated'])

    @bp.route('/payments/<int:payment_id>', methods=['DELETE'])
    @login_required
    @permission_required('payments.manage')
    def payments_delete(payment_id):
        """Delete a payment together with its refunds."""
        try:
            deleted = delete_payment(payment_id)
        except Exception as e:
            current_app.logger.error(f'Error deleting payment {payment_id}: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not deleted:
            return api_error(MESSAGES['payment_not_found'], status=404)
        return api_success(message=MESSAGES['payment_deleted'])
