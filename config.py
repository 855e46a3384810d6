import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///loantrack.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bounded wait on the data store before a write is treated as transient
    STORE_TIMEOUT_SECONDS = int(os.environ.get('STORE_TIMEOUT_SECONDS') or 10)
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }
    if SQLALCHEMY_DATABASE_URI.startswith('sqlite'):
        SQLALCHEMY_ENGINE_OPTIONS['connect_args'] = {'timeout': STORE_TIMEOUT_SECONDS}

    # Session configuration
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    REMEMBER_COOKIE_DURATION = timedelta(hours=24)
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Sign-in
    AUTHORIZED_EMAILS = os.environ.get('AUTHORIZED_EMAILS', '')
    OTP_LENGTH = 6
    OTP_EXPIRY_MINUTES = 10
    OTP_RATE_LIMIT_SECONDS = 30
    SESSION_LIFETIME_HOURS = 24

    # Outgoing mail
    SMTP_HOST = os.environ.get('SMTP_HOST') or 'smtp.gmail.com'
    SMTP_PORT = int(os.environ.get('SMTP_PORT') or 587)
    SMTP_SECURE = _env_flag('SMTP_SECURE')
    SMTP_USER = os.environ.get('SMTP_USER')
    SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD')
    SMTP_FROM = os.environ.get('SMTP_FROM') or 'Loan Tracker <noreply@example.com>'
    SMTP_TIMEOUT = int(os.environ.get('SMTP_TIMEOUT') or 15)
    MAIL_DEV_FALLBACK = False

    # Weekly reminders
    PAYMENT_REMINDER_FROM = os.environ.get('PAYMENT_REMINDER_FROM')
    PAYMENT_REMINDER_SUBJECT = os.environ.get('PAYMENT_REMINDER_SUBJECT')
    REMINDER_TOKEN = os.environ.get('REMINDER_TOKEN')

    # Dashboard
    ITEMS_PER_PAGE = 25
    PROJECTION_WINDOW_DAYS = 30
    MARK_FINISHED_THRESHOLD = 100
    CURRENCY_SYMBOL = '₹'
    APP_NAME = 'Loan Tracker'

    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = False
    MAIL_DEV_FALLBACK = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'DEBUG'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Strict'
    REMEMBER_COOKIE_SECURE = True

    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': 10,
        'max_overflow': 20,
        'pool_timeout': Config.STORE_TIMEOUT_SECONDS,
    }


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}
    WTF_CSRF_ENABLED = False
    AUTHORIZED_EMAILS = 'owner@example.com, Partner@Example.com'
    REMINDER_TOKEN = 'test-reminder-token'
    SMTP_FROM = 'Loan Tracker <noreply@example.com>'
    LOG_LEVEL = 'WARNING'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
