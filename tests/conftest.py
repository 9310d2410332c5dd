"""
Pytest configuration and fixtures.
Every test gets its own temporary SQLite database and upload folder.
"""

import os
import pytest
from datetime import timedelta

# Keep the test config off the development database even before create_app runs
os.environ.setdefault('FLASK_ENV', 'test')

# Seeded accommodation ids (database/seed.py)
COTTAGE_A = 1
COTTAGE_B = 2
FAMILY_ROOM = 3
DELUXE_ROOM = 4


@pytest.fixture
def app(tmp_path):
    """Create test application with an isolated, seeded database."""
    from app import create_app
    from database import init_db

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['DATABASE_PATH'] = str(tmp_path / 'resort_test.db')
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')

    with app.app_context():
        init_db()

    # Requests push their own app context, so g (user, permissions, db)
    # never leaks between requests
    yield app


@pytest.fixture
def app_ctx(app):
    """Application context for calling models directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def _login(client, username, password):
    response = client.post('/login', json={'username': username, 'password': password})
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture
def authenticated_client(app, client):
    """Test client logged in as the seeded admin."""
    return _login(client, 'admin', 'admin123')


@pytest.fixture
def make_user(app):
    """Factory creating a user with a role; returns the user id."""
    def _make_user(username, role='staff', password='secret123'):
        from models.user import create_user
        from models.role import get_role_by_name

        with app.app_context():
            role_row = get_role_by_name(role)
            return create_user(username=username, email=f'{username}@example.com',
                               password=password, full_name=username.title(),
                               role_id=role_row['id'])
    return _make_user


@pytest.fixture
def login_as(app, make_user):
    """Factory returning a fresh client logged in as a new user of a role."""
    def _login_as(username, role):
        make_user(username, role=role)
        return _login(app.test_client(), username, 'secret123')
    return _login_as


@pytest.fixture
def future(app):
    """Date n days from today in the resort's timezone."""
    from utils.datetime_helpers import get_today

    with app.app_context():
        today = get_today()

    def _future(days):
        return today + timedelta(days=days)
    return _future


@pytest.fixture
def booking_factory(app):
    """
    Insert a booking row directly, bypassing create_booking.

    Lets tests place bookings on fixed or past dates and in any status.
    Returns the booking id.
    """
    counter = {'value': 0}

    def _make_booking(accommodation_id=COTTAGE_A, check_in='2025-06-10', check_out='2025-06-12',
                      status='confirmed', booking_type='overnight', total_amount='5000.00',
                      paid_amount='0.00', booking_number=None, created_by=None):
        from database import get_db

        counter['value'] += 1
        number = booking_number or f'BK-TEST-{counter["value"]:04d}'

        with app.app_context():
            db = get_db()
            cursor = db.execute('''
                INSERT INTO bookings
                (booking_number, booking_code, source, booking_type, created_by, guest_name,
                 check_in_date, check_out_date, total_adults, total_children,
                 accommodation_total, total_amount, paid_amount, status)
                VALUES (?, ?, 'walk_in', ?, ?, 'Test Guest', ?, ?, 2, 0, ?, ?, ?, ?)
            ''', (number, f'CODE{counter["value"]:04d}', booking_type, created_by,
                  check_in, check_out, total_amount, total_amount, paid_amount, status))
            booking_id = cursor.lastrowid
            db.execute('''
                INSERT INTO booking_accommodations
                (booking_id, accommodation_id, guests, rate, subtotal)
                VALUES (?, ?, 2, ?, ?)
            ''', (booking_id, accommodation_id, total_amount, total_amount))
            db.commit()
        return booking_id

    return _make_booking


@pytest.fixture
def rebooking_factory(app):
    """
    Insert a rebooking row directly with the given dates, status and amounts.
    Returns the rebooking id.
    """
    counter = {'value': 0}

    def _make_rebooking(booking_id, new_check_in='2025-06-20', new_check_out='2025-06-22',
                        status='approved', original_amount='5000.00', new_amount='5000.00',
                        rebooking_fee='0.00', accommodation_id=COTTAGE_A):
        from database import get_db
        from decimal import Decimal

        counter['value'] += 1
        difference = Decimal(new_amount) - Decimal(original_amount)
        adjustment = difference + Decimal(rebooking_fee)

        with app.app_context():
            db = get_db()
            cursor = db.execute('''
                INSERT INTO rebookings
                (original_booking_id, rebooking_number, new_check_in_date, new_check_out_date,
                 new_total_adults, new_total_children, original_amount, new_amount,
                 amount_difference, rebooking_fee, total_adjustment, status)
                VALUES (?, ?, ?, ?, 2, 0, ?, ?, ?, ?, ?, ?)
            ''', (booking_id, f'RB-TEST-{counter["value"]:04d}', new_check_in, new_check_out,
                  original_amount, new_amount, difference, rebooking_fee, adjustment, status))
            rebooking_id = cursor.lastrowid
            db.execute('''
                INSERT INTO rebooking_accommodations
                (rebooking_id, accommodation_id, guests, rate, subtotal)
                VALUES (?, ?, 2, ?, ?)
            ''', (rebooking_id, accommodation_id, new_amount, new_amount))
            db.commit()
        return rebooking_id

    return _make_rebooking


@pytest.fixture
def overnight_booking_data(future):
    """Request body for a two-night Cottage A stay 30 days out (total 5300.00)."""
    return {
        'guest_name': 'Ana Reyes',
        'guest_email': 'ana@example.com',
        'guest_phone': '+639171234567',
        'booking_type': 'overnight',
        'check_in_date': future(30).isoformat(),
        'check_out_date': future(32).isoformat(),
        'total_adults': 2,
        'total_children': 0,
        'accommodations': [{'accommodation_id': COTTAGE_A, 'guests': 2}],
    }
