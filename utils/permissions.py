"""
Permission checking and caching utilities.
Provides functions to load and check user permissions.
"""

from database import get_db
from models.role import get_role_permissions


def load_user_permissions(user_id: int) -> set:
    """
    Load all permissions for a user based on their role.

    Args:
        user_id: User ID

    Returns:
        Set of permission codes
    """
    db = get_db()
    cursor = db.cursor()

    # Get user's role
    cursor.execute('SELECT role_id FROM users WHERE id = ?', (user_id,))
    row = cursor.fetchone()

    if not row or not row['role_id']:
        return set()

    permissions = get_role_permissions(row['role_id'])

    return {perm['code'] for perm in permissions}
