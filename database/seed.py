"""
Database seed data.
Initial data population for fresh database installations.
"""

from werkzeug.security import generate_password_hash


def seed_database(db):
    """Insert initial seed data."""

    # 1. Create Roles
    roles_data = [
        ('admin', 'Administrator', 'Full system access'),
        ('staff', 'Front Desk Staff', 'Daily booking, payment and rebooking operations'),
        ('customer', 'Customer', 'Registered guest with access to own bookings'),
    ]

    for name, display_name, description in roles_data:
        db.execute('''
            INSERT INTO roles (name, display_name, description)
            VALUES (?, ?, ?)
        ''', (name, display_name, description))

    # 2. Create Permissions
    permissions_data = [
        ('accommodations.view', 'View Accommodations', 'accommodations'),
        ('accommodations.manage', 'Manage Accommodations', 'accommodations'),
        ('bookings.view', 'View Bookings', 'bookings'),
        ('bookings.create', 'Create Bookings', 'bookings'),
        ('bookings.edit', 'Edit Bookings', 'bookings'),
        ('bookings.delete', 'Delete Bookings', 'bookings'),
        ('bookings.change_state', 'Change Booking Status', 'bookings'),
        ('payments.view', 'View Payments', 'payments'),
        ('payments.manage', 'Record Payments', 'payments'),
        ('refunds.manage', 'Process Refunds', 'payments'),
        ('rebookings.view', 'View Rebookings', 'rebookings'),
        ('rebookings.create', 'Request Rebookings', 'rebookings'),
        ('rebookings.approve', 'Approve Rebookings', 'rebookings'),
    ]

    for code, name, module in permissions_data:
        db.execute('''
            INSERT INTO permissions (code, name, module)
            VALUES (?, ?, ?)
        ''', (code, name, module))

    # 3. Assign Permissions to Roles
    admin_role_id = db.execute("SELECT id FROM roles WHERE name = 'admin'").fetchone()[0]
    staff_role_id = db.execute("SELECT id FROM roles WHERE name = 'staff'").fetchone()[0]
    customer_role_id = db.execute("SELECT id FROM roles WHERE name = 'customer'").fetchone()[0]

    # Admin gets all permissions
    all_perms = db.execute('SELECT id FROM permissions').fetchall()
    for perm in all_perms:
        db.execute('INSERT INTO role_permissions (role_id, permission_id) VALUES (?, ?)',
                   (admin_role_id, perm[0]))

    # Staff gets everything except deletes, approvals and accommodation setup
    staff_perms = db.execute('''
        SELECT id FROM permissions
        WHERE code NOT IN ('bookings.delete', 'rebookings.approve', 'accommodations.manage')
    ''').fetchall()
    for perm in staff_perms:
        db.execute('INSERT INTO role_permissions (role_id, permission_id) VALUES (?, ?)',
                   (staff_role_id, perm[0]))

    # Customers can browse, book and request rebookings
    customer_perms = db.execute('''
        SELECT id FROM permissions
        WHERE code IN ('accommodations.view', 'bookings.view', 'bookings.create',
                       'rebookings.view', 'rebookings.create')
    ''').fetchall()
    for perm in customer_perms:
        db.execute('INSERT INTO role_permissions (role_id, permission_id) VALUES (?, ?)',
                   (customer_role_id, perm[0]))

    # 4. Create Admin User
    password_hash = generate_password_hash('admin123')
    db.execute('''
        INSERT INTO users (username, email, password_hash, full_name, role_id, active)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', ('admin', 'admin@resort.local', password_hash, 'System Administrator', admin_role_id, 1))

    # 5. Create Accommodations
    # (name, type, min_capacity, max_capacity, description)
    accommodations_data = [
        ('Cottage A', 'cottage', 1, 6, 'Beachfront cottage near the shoreline'),
        ('Cottage B', 'cottage', 1, 6, 'Shaded cottage beside the garden'),
        ('Family Room', 'room', 2, 4, 'Air-conditioned room for small families'),
        ('Deluxe Room', 'room', 2, 2, 'Sea-view room for two'),
    ]

    for name, acc_type, min_cap, max_cap, description in accommodations_data:
        db.execute('''
            INSERT INTO accommodations (name, type, min_capacity, max_capacity, description)
            VALUES (?, ?, ?, ?, ?)
        ''', (name, acc_type, min_cap, max_cap, description))

    # 6. Create Accommodation Rates
    # (accommodation, booking_type, rate, additional_pax_rate, includes_free_entrance,
    #  adult_entrance_fee, child_entrance_fee)
    rates_data = [
        ('Cottage A', 'day_tour', '1500.00', '0.00', 0, '100.00', '50.00'),
        ('Cottage A', 'overnight', '2500.00', '0.00', 0, '150.00', '75.00'),
        ('Cottage B', 'day_tour', '1200.00', '0.00', 0, '100.00', '50.00'),
        ('Cottage B', 'overnight', '2000.00', '0.00', 0, '150.00', '75.00'),
        ('Family Room', 'day_tour', '2000.00', '300.00', 1, '100.00', '50.00'),
        ('Family Room', 'overnight', '3500.00', '500.00', 1, '150.00', '75.00'),
        ('Deluxe Room', 'overnight', '4500.00', '0.00', 1, '150.00', '75.00'),
    ]

    for (acc_name, booking_type, rate, extra_rate, free_entrance,
         adult_fee, child_fee) in rates_data:
        acc_id = db.execute('SELECT id FROM accommodations WHERE name = ?',
                            (acc_name,)).fetchone()[0]
        db.execute('''
            INSERT INTO accommodation_rates
            (accommodation_id, booking_type, rate, additional_pax_rate, includes_free_entrance,
             adult_entrance_fee, child_entrance_fee)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (acc_id, booking_type, rate, extra_rate, free_entrance, adult_fee, child_fee))


def seed_demo_data(days_ahead: int = 7):
    """
    Create a handful of demo bookings through the model layer.

    Requires an application context and a seeded database.

    Args:
        days_ahead: First demo check-in date, counted from today

    Returns:
        list: Booking numbers created
    """
    from datetime import timedelta
    from models.booking import create_booking
    from utils.datetime_helpers import get_today

    start = get_today() + timedelta(days=days_ahead)

    demo_bookings = [
        {
            'guest_name': 'Maria Santos',
            'guest_email': 'maria@example.com',
            'booking_type': 'day_tour',
            'check_in_date': start.isoformat(),
            'total_adults': 4,
            'total_children': 2,
            'source': 'walk_in',
            'accommodations': [{'accommodation_id': 1, 'guests': 6}],
        },
        {
            'guest_name': 'Juan Dela Cruz',
            'guest_email': 'juan@example.com',
            'booking_type': 'overnight',
            'check_in_date': (start + timedelta(days=2)).isoformat(),
            'check_out_date': (start + timedelta(days=4)).isoformat(),
            'total_adults': 3,
            'total_children': 0,
            'source': 'guest',
            'accommodations': [{'accommodation_id': 3, 'guests': 3}],
        },
    ]

    created = []
    for data in demo_bookings:
        booking = create_booking(data)
        created.append(booking['booking_number'])
    return created
