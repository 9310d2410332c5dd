"""
Refund API routes.
"""

from flask import current_app
from flask_login import login_required, current_user

from models.payment import get_payment_by_id
from models.refund import (
    get_refund_by_id, get_refunds_for_payment, create_refund, update_refund, delete_refund,
)
from utils.api_response import api_success, api_error, api_validation_error
from utils.decorators import permission_required
from utils.messages import MESSAGES
from utils.validators import BookingValidationError
from blueprints.bookings.access import request_data, uploaded_image


def register_routes(bp):
    """Register refund routes on the blueprint."""

    @bp.route('/payments/<int:payment_id>/refunds', methods=['GET'])
    @login_required
    @permission_required('payments.view')
    def refunds_list(payment_id):
        payment = get_payment_by_id(payment_id)
        if not payment:
            return api_error(MESSAGES['payment_not_found'], status=404)

        refunds = get_refunds_for_payment(payment_id)
        return api_success(
            data=refunds,
            count=len(refunds),
            refunded_amount=payment['refunded_amount'],
            refundable_amount=payment['refundable_amount'],
        )

    @bp.route('/payments/<int:payment_id>/refunds', methods=['POST'])
    @login_required
    @permission_required('refunds.manage')
    def refunds_create(payment_id):
        """Refund part or all of a payment."""
        try:
            refund = create_refund(payment_id, request_data(),
                                   processed_by=current_user.id,
                                   reference_image=uploaded_image())
        except BookingValidationError as e:
            return api_validation_error(e)
        except Exception as e:
            current_app.logger.error(f'Error refunding payment {payment_id}: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not refund:
            return api_error(MESSAGES['payment_not_found'], status=404)
        return api_success(data=refund, message=MESSAGES['refund_recorded'], status=201)

    @bp.route('/refunds/<int:refund_id>', methods=['GET'])
    @login_required
    @permission_required('payments.view')
    def refunds_detail(refund_id):
        refund = get_refund_by_id(refund_id)
        if not refund:
            return api_error(MESSAGES['refund_not_found'], status=404)
        return api_success(data=refund)

    @bp.route('/refunds/<int:refund_id>', methods=['PUT', 'PATCH'])
    @login_required
    @permission_required('refunds.manage')
    def refunds_update(refund_id):
        try:
            refund = update_refund(refund_id, request_data(), reference_image=uploaded_image())
        except BookingValidationError as e:
            return api_validation_error(e)
        except Exception as e:
            current_app.logger.error(f'Error updating refund {refund_id}: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not refund:
            return api_error(MESSAGES['refund_not_found'], status=404)
        return api_success(data=refund, message=MESSAGES['refund_updated'])

    @bp.route('/refunds/<int:refund_id>', methods=['DELETE'])
    @login_required
    @permission_required('refunds.manage')
    def refunds_delete(refund_id):
        try:
            deleted = delete_refund(refund_id)
        except Exception as e:
            current_app.logger.error(f'Error deleting refund {refund_id}: {e}', exc_info=True)
            return api_error(MESSAGES['internal_error'], status=500)

        if not deleted:
            return api_error(MESSAGES['refund_not_found'], status=404)
        return api_success(message=MESSAGES['refund_deleted'])
