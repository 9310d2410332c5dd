"""
Reference image uploads for payments and refunds.

Files live under UPLOAD_FOLDER/<kind>/ and rows store the path relative to
UPLOAD_FOLDER.
"""

import os
import secrets

from flask import current_app
from werkzeug.utils import secure_filename

from utils.datetime_helpers import get_now


def get_file_extension(filename: str) -> str:
    """
    Get file extension from filename.

    Args:
        filename: Filename

    Returns:
        Extension without dot (lowercase)
    """
    if not filename:
        return ''

    return os.path.splitext(filename)[1][1:].lower()


def allowed_file(filename: str, allowed_extensions: set) -> bool:
    """Check if file extension is allowed."""
    return get_file_extension(filename) in allowed_extensions


def save_reference_image(file_storage, kind: str) -> str:
    """
    Store an uploaded proof-of-payment image.

    Args:
        file_storage: werkzeug FileStorage from request.files
        kind: Sub-folder name ('payments' or 'refunds')

    Returns:
        Path relative to UPLOAD_FOLDER

    Raises:
        ValueError: If the file type is not allowed
    """
    allowed = current_app.config.get('ALLOWED_IMAGE_EXTENSIONS', {'png', 'jpg', 'jpeg'})
    filename = secure_filename(file_storage.filename or '')
    if not filename or not allowed_file(filename, allowed):
        raise ValueError('File type not allowed')

    name, ext = os.path.splitext(filename)
    stamp = get_now().strftime('%Y%m%d_%H%M%S')
    stored_name = f'{name[:60]}_{stamp}_{secrets.token_hex(4)}{ext.lower()}'

    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], kind)
    os.makedirs(folder, exist_ok=True)
    file_storage.save(os.path.join(folder, stored_name))

    return f'{kind}/{stored_name}'


def delete_reference_image(relative_path: str | None) -> bool:
    """
    Remove a stored reference image if it exists.

    Returns:
        True if a file was deleted
    """
    if not relative_path:
        return False

    root = os.path.abspath(current_app.config['UPLOAD_FOLDER'])
    full_path = os.path.abspath(os.path.join(root, relative_path))
    # Never delete outside the upload folder
    if os.path.commonpath([root, full_path]) != root:
        return False

    if os.path.isfile(full_path):
        os.remove(full_path)
        current_app.logger.info(f'Deleted reference image {relative_path}')
        return True
    return False
