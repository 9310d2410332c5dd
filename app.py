"""
Resort Booking - booking core for a beach resort
Flask application factory and initialization
"""

import os
import click
import logging
from datetime import date, datetime
from decimal import Decimal

from flask import Flask, g
from flask.json.provider import DefaultJSONProvider
from flask_wtf.csrf import CSRFError
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import extensions
from extensions import login_manager, csrf

# Import database functions
from database import close_db, init_db

from utils.api_response import api_success, api_error
from utils.messages import MESSAGES


class ResortJSONProvider(DefaultJSONProvider):
    """Serializes dates as YYYY-MM-DD and money as two-decimal strings."""

    @staticmethod
    def default(o):
        if isinstance(o, datetime):
            return o.isoformat(sep=' ')
        if isinstance(o, date):
            return o.isoformat()
        if isinstance(o, Decimal):
            return f'{o:.2f}'
        if isinstance(o, set):
            return sorted(o)
        return DefaultJSONProvider.default(o)


def create_app(config_name=None):
    """
    Application factory for Flask app.

    Args:
        config_name: Configuration name ('development', 'production', 'test')

    Returns:
        Flask application instance
    """
    # Determine config
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    config_class = config[config_name]
    if config_name == 'production':
        config_class.validate()

    # Create Flask app
    app = Flask(__name__)
    app.json = ResortJSONProvider(app)

    # Load configuration
    app.config.from_object(config_class)

    # Initialize extensions
    initialize_extensions(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register teardown handlers
    register_teardown_handlers(app)

    # Configure logging
    configure_logging(app)

    return app


def initialize_extensions(app):
    """Initialize Flask extensions."""
    # Initialize Flask-Login
    login_manager.init_app(app)
    # Initialize CSRF Protection
    csrf.init_app(app)


def register_blueprints(app):
    """Register Flask blueprints."""
    # Import blueprints
    from blueprints.auth.routes import auth_bp
    from blueprints.api.routes import api_bp
    from blueprints.bookings import bookings_bp

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(bookings_bp, url_prefix='/api')

    @app.route('/')
    def index():
        """Service banner."""
        return api_success(app=app.config.get('APP_NAME'), health='/api/health')


def register_error_handlers(app):
    """Register JSON error handlers."""

    @app.errorhandler(400)
    def bad_request_error(error):
        """Handle 400 errors."""
        return api_error(getattr(error, 'description', None) or 'Bad request', status=400)

    @app.errorhandler(CSRFError)
    def csrf_error(error):
        """Handle missing or expired CSRF tokens."""
        return api_error(error.description, status=400)

    @app.errorhandler(403)
    def forbidden_error(error):
        """Handle 403 errors."""
        return api_error(MESSAGES['permission_denied'], status=403)

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 errors."""
        return api_error(MESSAGES['not_found'], status=404)

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 errors."""
        return api_error('Method not allowed', status=405)

    @app.errorhandler(413)
    def too_large_error(error):
        """Handle uploads over MAX_CONTENT_LENGTH."""
        return api_error(MESSAGES['file_too_large'], status=413)

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        # Rollback database on error
        db = g.get('db')
        if db:
            db.rollback()
        app.logger.error(f'Unhandled error: {error}', exc_info=True)
        return api_error(MESSAGES['internal_error'], status=500)


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Initialize database with schema and seed data."""
        click.echo('Initializing database...')
        db_dir = os.path.dirname(app.config['DATABASE_PATH'])
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        with app.app_context():
            init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-user')
    @click.argument('username')
    @click.argument('email')
    @click.option('--role', default='admin', type=click.Choice(['admin', 'staff', 'customer']),
                  help='Role to assign')
    @click.password_option()
    def create_user_command(username, email, role, password):
        """Create a new user."""
        import sqlite3
        from models.user import create_user
        from models.role import get_role_by_name
        from utils.validators import validate_password

        is_valid, message = validate_password(password)
        if not is_valid:
            click.echo(message, err=True)
            return

        with app.app_context():
            role_row = get_role_by_name(role)
            if role_row is None:
                click.echo(f'Role {role} not found. Run init-db first.', err=True)
                return

            try:
                user_id = create_user(
                    username=username,
                    email=email,
                    password=password,
                    role_id=role_row['id']
                )
                click.echo(f'User created successfully! ID: {user_id}')
            except sqlite3.IntegrityError as e:
                click.echo(f'Error creating user: {str(e)}', err=True)

    @app.cli.command('seed-demo')
    @click.option('--days-ahead', default=7, show_default=True, help='First demo check-in, from today')
    def seed_demo_command(days_ahead):
        """Create demo bookings on a seeded database."""
        from database import seed_demo_data
        from utils.validators import BookingValidationError

        with app.app_context():
            try:
                numbers = seed_demo_data(days_ahead=days_ahead)
            except BookingValidationError as e:
                click.echo(f'Could not create demo bookings: {e.errors}', err=True)
                return
        for number in numbers:
            click.echo(f'Created booking {number}')


def register_teardown_handlers(app):
    """Register teardown handlers."""

    @app.teardown_appcontext
    def teardown_db(error):
        """Close database connection at end of request."""
        close_db(error)


def configure_logging(app):
    """Configure application logging."""
    if not app.debug and not app.testing:
        # Production logging
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/resort.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Resort Booking startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    # host='0.0.0.0' allows access from other devices on the network
    app.run(host='0.0.0.0', debug=True)
