"""
Bookings blueprint initialization.
Assembles the booking API route modules into one blueprint mounted at /api.

Route logic lives in:
- routes/bookings.py - Booking CRUD and status changes
- routes/availability.py - Availability checks
- routes/calendar.py - Per-date occupancy calendar
- routes/payments.py - Payments on bookings and rebookings
- routes/refunds.py - Refunds against payments
- routes/rebookings.py - Rebooking workflow
"""

from flask import Blueprint

bookings_bp = Blueprint('bookings', __name__)

from blueprints.bookings.routes import bookings
from blueprints.bookings.routes import availability
from blueprints.bookings.routes import calendar
from blueprints.bookings.routes import payments
from blueprints.bookings.routes import refunds
from blueprints.bookings.routes import rebookings

bookings.register_routes(bookings_bp)
availability.register_routes(bookings_bp)
calendar.register_routes(bookings_bp)
payments.register_routes(bookings_bp)
refunds.register_routes(bookings_bp)
rebookings.register_routes(bookings_bp)
