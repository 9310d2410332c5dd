"""
Role and permission data access functions.
Handles role lookup and role-permission queries.
"""

from database import get_db


def get_role_by_name(name: str) -> dict:
    """
    Get role by name.

    Args:
        name: Role name

    Returns:
        Role dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM roles WHERE name = ?', (name,)).fetchone()
    return dict(row) if row else None


def get_role_permissions(role_id: int) -> list:
    """
    Get all active permissions assigned to a role.

    Args:
        role_id: Role ID

    Returns:
        List of permission dicts
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT p.*
        FROM permissions p
        JOIN role_permissions rp ON p.id = rp.permission_id
        WHERE rp.role_id = ? AND p.active = 1
        ORDER BY p.module, p.code
    ''', (role_id,))
    return [dict(row) for row in cursor.fetchall()]
