"""
Input validation helper functions.
Provides validation for common input types and a per-field error collector.
"""

import re


class BookingValidationError(ValueError):
    """
    Input rejected with per-field messages.

    Attributes:
        errors: dict mapping field name to a list of messages
    """

    def __init__(self, errors: dict, message: str = None):
        self.errors = errors
        if message is None:
            first = next(iter(errors.values()), ['Invalid input'])
            message = first[0] if first else 'Invalid input'
        super().__init__(message)


class FieldErrors:
    """
    Collects validation messages keyed by field name.

    Usage:
        errors = FieldErrors()
        if not data.get('guest_name'):
            errors.add('guest_name', 'Guest name is required')
        errors.raise_if_any()
    """

    def __init__(self):
        self.errors = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def __bool__(self) -> bool:
        return bool(self.errors)

    def __contains__(self, field: str) -> bool:
        return field in self.errors

    def raise_if_any(self) -> None:
        if self.errors:
            raise BookingValidationError(self.errors)


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    """
    Validate a phone number loosely: optional leading +, 7 to 15 digits.

    Args:
        phone: Phone number to validate

    Returns:
        True if valid phone format
    """
    if not phone:
        return False

    # Remove spaces and common separators
    cleaned = re.sub(r'[\s\-\(\)]', '', phone)
    return bool(re.match(r'^\+?[0-9]{7,15}$', cleaned))


def validate_password(password: str, min_length: int = 6) -> tuple:
    """
    Validate password strength.

    Args:
        password: Password to validate
        min_length: Minimum password length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, 'Password is required'

    if len(password) < min_length:
        return False, f'Password must be at least {min_length} characters'

    return True, ''


def parse_positive_int(value, minimum: int = 0):
    """
    Parse an integer that must be >= minimum.

    Returns:
        int, or None if the value is missing, not an integer or below minimum
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if isinstance(value, float) and value != number:
        return None
    return number if number >= minimum else None


def sanitize_input(text: str, max_length: int = None) -> str:
    """
    Sanitize text input by trimming and limiting length.

    Args:
        text: Text to sanitize
        max_length: Maximum length (optional)

    Returns:
        Sanitized text
    """
    if not text:
        return ''

    # Strip whitespace
    sanitized = str(text).strip()

    # Limit length if specified
    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
