"""
Database schema definitions.
Table creation, indexes, and structure management.

Money columns are stored as TEXT holding a two-decimal string ('1200.00')
and converted to Decimal when rows are read, so no amount ever passes
through a float.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'identifier_sequences',
        'refunds',
        'payments',
        'rebooking_entrance_fees',
        'rebooking_accommodations',
        'rebookings',
        'booking_entrance_fees',
        'booking_accommodations',
        'bookings',
        'accommodation_rates',
        'accommodations',
        'role_permissions',
        'permissions',
        'roles',
        'users'
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Users & Auth Tables
    db.execute('''
        CREATE TABLE roles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            display_name TEXT NOT NULL,
            description TEXT,
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            full_name TEXT,
            role_id INTEGER REFERENCES roles(id),
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_login TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE permissions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            module TEXT NOT NULL,
            active INTEGER DEFAULT 1
        )
    ''')

    db.execute('''
        CREATE TABLE role_permissions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            role_id INTEGER NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
            permission_id INTEGER NOT NULL REFERENCES permissions(id) ON DELETE CASCADE,
            granted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(role_id, permission_id)
        )
    ''')

    # 2. Accommodation Tables
    db.execute('''
        CREATE TABLE accommodations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            type TEXT NOT NULL DEFAULT 'cottage' CHECK(type IN ('room', 'cottage')),
            min_capacity INTEGER NOT NULL DEFAULT 1,
            max_capacity INTEGER NOT NULL DEFAULT 4,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active', 'inactive')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE accommodation_rates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            accommodation_id INTEGER NOT NULL REFERENCES accommodations(id) ON DELETE CASCADE,
            booking_type TEXT NOT NULL CHECK(booking_type IN ('day_tour', 'overnight')),
            rate TEXT NOT NULL DEFAULT '0.00',
            additional_pax_rate TEXT NOT NULL DEFAULT '0.00',
            includes_free_entrance INTEGER DEFAULT 0,
            adult_entrance_fee TEXT NOT NULL DEFAULT '0.00',
            child_entrance_fee TEXT NOT NULL DEFAULT '0.00',
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active', 'inactive')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 3. Booking Tables
    db.execute('''
        CREATE TABLE bookings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_number TEXT UNIQUE NOT NULL,
            booking_code TEXT UNIQUE NOT NULL,
            source TEXT NOT NULL DEFAULT 'registered'
                CHECK(source IN ('guest', 'registered', 'walk_in')),
            booking_type TEXT NOT NULL DEFAULT 'day_tour'
                CHECK(booking_type IN ('day_tour', 'overnight')),
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            guest_name TEXT NOT NULL,
            guest_email TEXT,
            guest_phone TEXT,
            guest_address TEXT,
            check_in_date DATE NOT NULL,
            check_out_date DATE,
            total_adults INTEGER NOT NULL DEFAULT 1,
            total_children INTEGER NOT NULL DEFAULT 0,
            accommodation_total TEXT NOT NULL DEFAULT '0.00',
            entrance_fee_total TEXT NOT NULL DEFAULT '0.00',
            total_amount TEXT NOT NULL DEFAULT '0.00',
            paid_amount TEXT NOT NULL DEFAULT '0.00',
            down_payment_required INTEGER NOT NULL DEFAULT 0,
            down_payment_amount TEXT,
            down_payment_paid TEXT NOT NULL DEFAULT '0.00',
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'confirmed', 'checked_in', 'checked_out', 'cancelled')),
            notes TEXT,
            cancellation_reason TEXT,
            cancelled_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(check_out_date IS NULL OR check_out_date > check_in_date)
        )
    ''')

    db.execute('''
        CREATE TABLE booking_accommodations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            accommodation_id INTEGER NOT NULL REFERENCES accommodations(id),
            accommodation_rate_id INTEGER REFERENCES accommodation_rates(id) ON DELETE SET NULL,
            guests INTEGER NOT NULL,
            rate TEXT NOT NULL DEFAULT '0.00',
            additional_pax_charge TEXT NOT NULL DEFAULT '0.00',
            subtotal TEXT NOT NULL DEFAULT '0.00',
            free_entrance_used INTEGER NOT NULL DEFAULT 0
        )
    ''')

    db.execute('''
        CREATE TABLE booking_entrance_fees (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            type TEXT NOT NULL CHECK(type IN ('adult', 'child')),
            quantity INTEGER NOT NULL,
            rate TEXT NOT NULL DEFAULT '0.00',
            subtotal TEXT NOT NULL DEFAULT '0.00'
        )
    ''')

    # 4. Rebooking Tables
    db.execute('''
        CREATE TABLE rebookings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            original_booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            rebooking_number TEXT UNIQUE NOT NULL,
            processed_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            new_check_in_date DATE NOT NULL,
            new_check_out_date DATE,
            new_total_adults INTEGER NOT NULL DEFAULT 0,
            new_total_children INTEGER NOT NULL DEFAULT 0,
            original_amount TEXT NOT NULL DEFAULT '0.00',
            new_amount TEXT NOT NULL DEFAULT '0.00',
            amount_difference TEXT NOT NULL DEFAULT '0.00',
            rebooking_fee TEXT NOT NULL DEFAULT '0.00',
            total_adjustment TEXT NOT NULL DEFAULT '0.00',
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'approved', 'completed', 'cancelled')),
            payment_status TEXT NOT NULL DEFAULT 'pending'
                CHECK(payment_status IN ('pending', 'paid', 'refunded')),
            reason TEXT,
            admin_notes TEXT,
            approved_at TIMESTAMP,
            completed_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE rebooking_accommodations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            rebooking_id INTEGER NOT NULL REFERENCES rebookings(id) ON DELETE CASCADE,
            accommodation_id INTEGER NOT NULL REFERENCES accommodations(id),
            accommodation_rate_id INTEGER REFERENCES accommodation_rates(id) ON DELETE SET NULL,
            guests INTEGER NOT NULL,
            rate TEXT NOT NULL DEFAULT '0.00',
            additional_pax_charge TEXT NOT NULL DEFAULT '0.00',
            subtotal TEXT NOT NULL DEFAULT '0.00',
            free_entrance_used INTEGER NOT NULL DEFAULT 0
        )
    ''')

    db.execute('''
        CREATE TABLE rebooking_entrance_fees (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            rebooking_id INTEGER NOT NULL REFERENCES rebookings(id) ON DELETE CASCADE,
            type TEXT NOT NULL CHECK(type IN ('adult', 'child')),
            quantity INTEGER NOT NULL,
            rate TEXT NOT NULL DEFAULT '0.00',
            subtotal TEXT NOT NULL DEFAULT '0.00'
        )
    ''')

    # 5. Payment & Refund Tables
    db.execute('''
        CREATE TABLE payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL REFERENCES bookings(id) ON DELETE CASCADE,
            rebooking_id INTEGER REFERENCES rebookings(id) ON DELETE CASCADE,
            payment_number TEXT UNIQUE NOT NULL,
            amount TEXT NOT NULL,
            payment_method TEXT NOT NULL
                CHECK(payment_method IN ('cash', 'card', 'bank', 'gcash', 'maya', 'other')),
            is_down_payment INTEGER NOT NULL DEFAULT 0,
            reference_number TEXT,
            reference_image TEXT,
            notes TEXT,
            received_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            payment_date DATE NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE refunds (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            payment_id INTEGER NOT NULL REFERENCES payments(id) ON DELETE CASCADE,
            rebooking_id INTEGER REFERENCES rebookings(id) ON DELETE SET NULL,
            refund_number TEXT UNIQUE NOT NULL,
            amount TEXT NOT NULL,
            refund_method TEXT NOT NULL
                CHECK(refund_method IN ('cash', 'bank', 'gcash', 'maya', 'original_method', 'other')),
            reference_number TEXT,
            reference_image TEXT,
            reason TEXT,
            notes TEXT,
            processed_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            refund_date DATE NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 6. Identifier counters (one row per prefix and YYYYMM period)
    db.execute('''
        CREATE TABLE identifier_sequences (
            prefix TEXT NOT NULL,
            period TEXT NOT NULL,
            last_value INTEGER NOT NULL,
            PRIMARY KEY (prefix, period)
        )
    ''')


def create_indexes(db):
    """Create performance indexes."""

    # Booking indexes
    db.execute('CREATE INDEX idx_bookings_status ON bookings(status)')
    db.execute('CREATE INDEX idx_bookings_dates ON bookings(check_in_date, check_out_date)')
    db.execute('CREATE INDEX idx_booking_accommodations_lookup ON booking_accommodations(accommodation_id, booking_id)')
    db.execute('CREATE INDEX idx_booking_entrance_fees_booking ON booking_entrance_fees(booking_id)')

    # Rebooking indexes
    db.execute('CREATE INDEX idx_rebookings_original ON rebookings(original_booking_id, status)')
    db.execute('CREATE INDEX idx_rebooking_accommodations_rebooking ON rebooking_accommodations(rebooking_id)')

    # Payment & refund indexes
    db.execute('CREATE INDEX idx_payments_booking ON payments(booking_id)')
    db.execute('CREATE INDEX idx_payments_rebooking ON payments(rebooking_id)')
    db.execute('CREATE INDEX idx_refunds_payment ON refunds(payment_id)')
    db.execute('CREATE INDEX idx_refunds_rebooking ON refunds(rebooking_id)')

    # Rate lookup
    db.execute('CREATE INDEX idx_rates_accommodation ON accommodation_rates(accommodation_id, booking_type)')

    # Permission indexes
    db.execute('CREATE INDEX idx_permissions_code ON permissions(code)')
