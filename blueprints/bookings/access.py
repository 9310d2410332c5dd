"""
Request helpers shared by the booking API route modules.
"""

from flask import request
from flask_login import current_user

from models.booking import get_booking_by_id


def request_data() -> dict:
    """
    Request body as a plain dict.

    JSON bodies are returned as-is; multipart and urlencoded bodies (used
    when a reference image is uploaded) are flattened to single values.
    """
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def uploaded_image():
    """The reference_image file of a multipart request, if any."""
    return request.files.get('reference_image')


def can_access_booking(booking: dict) -> bool:
    """Staff see every booking; customers only the ones they created."""
    if current_user.is_staff:
        return True
    return booking.get('created_by') == current_user.id


def load_booking_for_user(booking_id: int, include_details: bool = True):
    """
    Get a booking the current user may see.

    Returns:
        Booking dict, or None when missing or owned by another customer
    """
    booking = get_booking_by_id(booking_id, include_details=include_details)
    if booking is None or not can_access_booking(booking):
        return None
    return booking
