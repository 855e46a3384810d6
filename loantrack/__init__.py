"""Application factory and initialization"""
import logging
import sys
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from config import config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()


def configure_logging(app):
    """Send log records to stdout at the configured level"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    ))

    package_logger = logging.getLogger('loantrack')
    package_logger.setLevel(level)
    for existing in package_logger.handlers[:]:
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.propagate = False

    app.logger.setLevel(level)


def create_app(config_name='default'):
    """Create and configure the Flask application"""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    from loantrack.utils.mailer import Mailer
    app.extensions['mailer'] = Mailer.from_config(app.config)

    # Configure login manager
    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please sign in to access this page.'
    login_manager.login_message_category = 'info'

    # Register blueprints
    from loantrack.auth import auth_bp
    from loantrack.main import main_bp
    from loantrack.loans import loans_bp
    from loantrack.payments import payments_bp
    from loantrack.reminders import reminders_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(main_bp, url_prefix='/')
    app.register_blueprint(loans_bp, url_prefix='/loans')
    app.register_blueprint(payments_bp, url_prefix='/payments')
    app.register_blueprint(reminders_bp, url_prefix='/reminders')

    from loantrack.utils.helpers import format_currency, format_date

    app.jinja_env.filters['currency'] = lambda amount: format_currency(
        amount, app.config['CURRENCY_SYMBOL']
    )
    app.jinja_env.filters['date'] = format_date

    # Context processor for global variables
    @app.context_processor
    def inject_globals():
        from datetime import date
        return dict(
            app_name=app.config['APP_NAME'],
            today=date.today(),
        )

    return app
