"""
Centralized UI messages.
All user-facing text in one place for consistency.
"""

MESSAGES = {
    # Success messages
    'login_success': 'Welcome {name}',
    'logout_success': 'Signed out successfully',
    'booking_created': 'Booking created successfully',
    'booking_updated': 'Booking updated successfully',
    'booking_deleted': 'Booking deleted',
    'booking_confirmed': 'Booking confirmed',
    'booking_cancelled': 'Booking cancelled',
    'booking_checked_in': 'Guest checked in',
    'booking_checked_out': 'Guest checked out',
    'payment_recorded': 'Payment recorded successfully',
    'payment_updated': 'Payment updated successfully',
    'payment_deleted': 'Payment deleted',
    'refund_recorded': 'Refund processed successfully',
    'refund_updated': 'Refund updated successfully',
    'refund_deleted': 'Refund deleted',
    'rebooking_created': 'Rebooking request submitted',
    'rebooking_updated': 'Rebooking updated successfully',
    'rebooking_deleted': 'Rebooking deleted',
    'rebooking_approved': 'Rebooking approved',
    'rebooking_rejected': 'Rebooking rejected',
    'rebooking_cancelled': 'Rebooking cancelled',
    'rebooking_completed': 'Rebooking completed',

    # Error messages
    'invalid_credentials': 'Invalid username or password',
    'permission_denied': 'You do not have permission for this action',
    'authentication_required': 'Authentication required',
    'not_found': 'Resource not found',
    'booking_not_found': 'Booking not found',
    'payment_not_found': 'Payment not found',
    'refund_not_found': 'Refund not found',
    'rebooking_not_found': 'Rebooking not found',
    'accommodation_not_found': 'Accommodation not found',
    'rate_not_found': 'Rate not found',
    'validation_failed': 'The given data was invalid',
    'internal_error': 'Internal server error',
    'invalid_file_type': 'File type not allowed',
    'file_too_large': 'File is too large',

    # Validation messages
    'field_required': 'This field is required',
    'invalid_value': 'Invalid value',
}
