"""
Database connection management.
Handles per-request connections, transactions, initialization, and teardown.
"""

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal

from flask import g, current_app


# Explicit adapters/converters so dates, timestamps and money round-trip
# without relying on the deprecated sqlite3 defaults.
sqlite3.register_adapter(Decimal, str)
sqlite3.register_adapter(date, lambda value: value.isoformat())
sqlite3.register_adapter(datetime, lambda value: value.isoformat(sep=' ', timespec='seconds'))
sqlite3.register_converter('DATE', lambda raw: date.fromisoformat(raw.decode()))
sqlite3.register_converter('TIMESTAMP', lambda raw: datetime.fromisoformat(raw.decode()))


def get_db():
    """
    Get database connection for the current app context with row factory.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/resort.db')
        g.db = sqlite3.connect(
            db_path,
            detect_types=sqlite3.PARSE_DECLTYPES
        )
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # Enable WAL mode for better concurrency
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def transaction():
    """
    Run a block inside one write transaction.

    Opens BEGIN IMMEDIATE so the writer lock is held from the first read,
    which makes check-then-write sequences (availability, identifier
    counters) atomic. Nested use joins the outer transaction; only the
    outermost block commits or rolls back.

    Yields:
        sqlite3.Connection: The active connection
    """
    db = get_db()

    if db.in_transaction:
        yield db
        return

    db.execute('BEGIN IMMEDIATE')
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db():
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes
    create_indexes(db)

    # Insert seed data
    seed_database(db)

    db.commit()
    current_app.logger.info('Database initialized')
