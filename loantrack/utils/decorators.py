"""Utility decorators"""
import hmac
from functools import wraps
from flask import current_app, flash, jsonify, redirect, request, url_for
from flask_login import current_user


def authorized_required(f):
    """Decorator to require a signed-in session for an allowlisted email"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        from loantrack.auth.otp import is_authorized_email

        if not current_user.is_authenticated:
            flash('Please sign in to access this page.', 'warning')
            return redirect(url_for('auth.login', next=request.path))

        if not is_authorized_email(current_user.email):
            flash('Your email is no longer authorized.', 'danger')
            return redirect(url_for('auth.unauthorized'))

        return f(*args, **kwargs)
    return decorated_function


def has_reminder_token():
    """True when the request carries the configured scheduler token"""
    expected = current_app.config.get('REMINDER_TOKEN')
    supplied = request.headers.get('X-Reminder-Token', '')
    return bool(expected and supplied and hmac.compare_digest(expected, supplied))


def reminder_access_required(f):
    """Allow the scheduler token on GET or POST, a signed-in user on POST only"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        from loantrack.auth.otp import is_authorized_email

        if has_reminder_token():
            return f(*args, **kwargs)

        if current_user.is_authenticated and is_authorized_email(current_user.email):
            if request.method != 'POST':
                return jsonify({'error': 'Use POST to send reminders'}), 405
            return f(*args, **kwargs)

        return jsonify({'error': 'Not authorized'}), 403
    return decorated_function
