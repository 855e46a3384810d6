"""Helper functions"""
from datetime import datetime
from flask import request, has_request_context
from loantrack import db
from loantrack.models import ActivityLog


def parse_allowlist(raw):
    """Split a comma separated allowlist into normalised addresses"""
    if not raw:
        return []
    if isinstance(raw, (list, tuple, set)):
        entries = raw
    else:
        entries = raw.split(',')
    return [e.strip().lower() for e in entries if e and e.strip()]


def normalize_email(email):
    return (email or '').strip().lower()


def format_currency(amount, currency_symbol='₹'):
    """Format amount as currency"""
    if amount is None:
        return f"{currency_symbol}0.00"
    return f"{currency_symbol}{amount:,.2f}"


def format_date(value, fmt='%d %b %Y'):
    """Format a date for display"""
    if not value:
        return ''
    if isinstance(value, str):
        value = datetime.strptime(value, '%Y-%m-%d').date()
    return value.strftime(fmt)



def log_activity(action, entity_type=None, entity_id=None, description=None, email=None):
    """Add an audit entry to the current session; the caller commits"""
    from flask_login import current_user

    ip_address = None
    if has_request_context():
        ip_address = request.remote_addr
        if email is None and current_user.is_authenticated:
            email = current_user.email

    log = ActivityLog(
        email=email,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        ip_address=ip_address,
    )
    db.session.add(log)
    return log
