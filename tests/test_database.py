"""
Database tests.
Tests database initialization, seed data and transaction handling.
"""

import pytest

from database import get_db, transaction


def _count(db, sql, params=()):
    return db.execute(sql, params).fetchone()[0]


class TestSchema:

    def test_database_tables(self, app_ctx):
        """Test that all required tables exist."""
        db = get_db()
        tables = [row[0] for row in db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        ).fetchall()]

        required_tables = [
            'users', 'roles', 'permissions', 'role_permissions',
            'accommodations', 'accommodation_rates',
            'bookings', 'booking_accommodations', 'booking_entrance_fees',
            'rebookings', 'rebooking_accommodations', 'rebooking_entrance_fees',
            'payments', 'refunds', 'identifier_sequences',
        ]

        for table in required_tables:
            assert table in tables, f"Table {table} should exist"

    def test_foreign_keys_enabled(self, app_ctx):
        assert get_db().execute('PRAGMA foreign_keys').fetchone()[0] == 1

    def test_init_db_resets_data(self, app_ctx, booking_factory):
        from database import init_db

        booking_factory()
        init_db()

        assert _count(get_db(), 'SELECT COUNT(*) FROM bookings') == 0


class TestSeedData:
    """Test that seed data was created correctly."""

    def test_admin_user(self, app_ctx):
        row = get_db().execute('''
            SELECT u.username, r.name AS role_name
            FROM users u JOIN roles r ON u.role_id = r.id
            WHERE u.username = 'admin'
        ''').fetchone()

        assert row is not None, "Admin user should exist"
        assert row['role_name'] == 'admin'

    def test_roles_and_permissions(self, app_ctx):
        db = get_db()

        assert _count(db, 'SELECT COUNT(*) FROM roles') == 3
        assert _count(db, 'SELECT COUNT(*) FROM permissions') == 13

    @pytest.mark.parametrize('role,expected', [
        ('admin', 13),
        ('staff', 10),
        ('customer', 5),
    ])
    def test_role_permission_counts(self, app_ctx, role, expected):
        count = _count(get_db(), '''
            SELECT COUNT(*) FROM role_permissions rp
            JOIN roles r ON rp.role_id = r.id
            WHERE r.name = ?
        ''', (role,))

        assert count == expected

    def test_accommodations_and_rates(self, app_ctx):
        db = get_db()

        assert _count(db, 'SELECT COUNT(*) FROM accommodations') == 4
        assert _count(db, 'SELECT COUNT(*) FROM accommodation_rates') == 7

    def test_deluxe_room_has_no_day_tour_rate(self, app_ctx):
        count = _count(get_db(), '''
            SELECT COUNT(*) FROM accommodation_rates ar
            JOIN accommodations a ON ar.accommodation_id = a.id
            WHERE a.name = 'Deluxe Room' AND ar.booking_type = 'day_tour'
        ''')

        assert count == 0


class TestTransaction:

    def test_commits_on_success(self, app_ctx):
        with transaction() as db:
            db.execute("INSERT INTO identifier_sequences (prefix, period, last_value) "
                       "VALUES ('BK', '202506', 1)")

        db = get_db()
        assert db.in_transaction is False
        assert _count(db, 'SELECT COUNT(*) FROM identifier_sequences') == 1

    def test_rolls_back_on_error(self, app_ctx):
        with pytest.raises(RuntimeError):
            with transaction() as db:
                db.execute("INSERT INTO identifier_sequences (prefix, period, last_value) "
                           "VALUES ('BK', '202506', 1)")
                raise RuntimeError('boom')

        assert _count(get_db(), 'SELECT COUNT(*) FROM identifier_sequences') == 0

    def test_nested_block_joins_outer(self, app_ctx):
        with pytest.raises(RuntimeError):
            with transaction() as db:
                with transaction() as inner:
                    assert inner is db
                    inner.execute("INSERT INTO identifier_sequences (prefix, period, last_value) "
                                  "VALUES ('PAY', '202506', 1)")
                # Still open after the inner block
                assert db.in_transaction is True
                raise RuntimeError('boom')

        assert _count(get_db(), 'SELECT COUNT(*) FROM identifier_sequences') == 0
