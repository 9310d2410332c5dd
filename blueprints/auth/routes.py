"""
Authentication routes: login, logout, current user.
Answers JSON; the booking frontend is a separate client.
"""

from flask import Blueprint, current_app, g
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from blueprints.auth.forms import LoginForm
from models.user import User, get_user_by_username, update_last_login, check_password
from utils.api_response import api_success, api_error
from utils.messages import MESSAGES
from utils.permissions import load_user_permissions

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/csrf-token')
def csrf_token():
    """Issue a CSRF token for clients posting with the X-CSRFToken header."""
    return api_success(data={'csrf_token': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log a user in.

    Accepts form fields or a JSON body with username, password and
    optional remember_me.
    """
    if current_user.is_authenticated:
        return api_success(data=current_user.to_dict())

    form = LoginForm()

    if not form.validate_on_submit():
        return api_error(MESSAGES['validation_failed'], status=422, errors=form.errors)

    user_dict = get_user_by_username(form.username.data)

    if user_dict is None or not check_password(user_dict, form.password.data):
        current_app.logger.warning(f'Failed login attempt for {form.username.data!r}')
        return api_error(MESSAGES['invalid_credentials'], status=401)

    if not user_dict.get('active'):
        return api_error('Your account has been deactivated. Contact an administrator.', status=403)

    user = User(user_dict)
    login_user(user, remember=form.remember_me.data)
    update_last_login(user.id)
    g.user_permissions = load_user_permissions(user.id)

    current_app.logger.info(f'User {user.username} logged in')
    return api_success(
        data={**user.to_dict(), 'permissions': sorted(g.user_permissions)},
        message=MESSAGES['login_success'].format(name=user.full_name or user.username)
    )


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Logout current user."""
    username = current_user.username
    logout_user()
    current_app.logger.info(f'User {username} logged out')
    return api_success(message=MESSAGES['logout_success'])


@auth_bp.route('/me')
@login_required
def me():
    """Current user with permission codes."""
    permissions = load_user_permissions(current_user.id)
    return api_success(data={**current_user.to_dict(), 'permissions': sorted(permissions)})
