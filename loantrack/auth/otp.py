"""Email allowlist, one-time sign-in codes and browser sessions

Sign-in is two steps: an allowlisted address asks for a code, which is
emailed and stored for a few minutes; presenting the code once opens a
session that lasts a day. The allowlist check here is the only one in the
application and is used by the routes, the session loader and the
reminder job alike.
"""
import hmac
import logging
import secrets
import threading
from collections import namedtuple
from datetime import datetime, timedelta
from flask import current_app, render_template
from loantrack import db
from loantrack.models import OneTimeCode, UserSession
from loantrack.utils.helpers import normalize_email, parse_allowlist
from loantrack.utils.mailer import get_mailer

logger = logging.getLogger(__name__)

CodeRequest = namedtuple('CodeRequest', ['ok', 'message', 'status'])


class ExpiringCache:
    """Remembers when a key was last seen, forgetting it after ``ttl_seconds``"""

    def __init__(self, ttl_seconds):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._entries = {}
        self._lock = threading.Lock()

    def touch(self, key, now=None):
        now = now or datetime.utcnow()
        with self._lock:
            self._purge(now)
            self._entries[key] = now

    def is_fresh(self, key, now=None):
        now = now or datetime.utcnow()
        with self._lock:
            seen = self._entries.get(key)
            return seen is not None and now - seen < self.ttl

    def clear(self):
        with self._lock:
            self._entries.clear()

    def _purge(self, now):
        stale = [k for k, seen in self._entries.items() if now - seen >= self.ttl]
        for key in stale:
            del self._entries[key]


def rate_limiter():
    """Per-app cache of recent code requests"""
    limiter = current_app.extensions.get('otp_rate_limit')
    if limiter is None:
        limiter = ExpiringCache(current_app.config['OTP_RATE_LIMIT_SECONDS'])
        current_app.extensions['otp_rate_limit'] = limiter
    return limiter


def is_authorized_email(email, allowlist=None):
    """Trimmed, case-insensitive membership in the configured allowlist"""
    email = normalize_email(email)
    if not email:
        return False
    if allowlist is None:
        allowlist = current_app.config.get('AUTHORIZED_EMAILS', '')
    return email in parse_allowlist(allowlist)


def generate_code(length=6):
    """Random numeric code"""
    return ''.join(secrets.choice('0123456789') for _ in range(length))


def get_code(email):
    return OneTimeCode.query.filter_by(email=normalize_email(email)).first()


def has_valid_code(email, now=None):
    record = get_code(email)
    return record is not None and not record.is_expired(now)


def store_code(email, code, now=None):
    """Replace any code held for ``email`` with a fresh one"""
    now = now or datetime.utcnow()
    email = normalize_email(email)

    OneTimeCode.query.filter_by(email=email).delete()
    record = OneTimeCode(
        email=email,
        code=code,
        created_at=now,
        expires_at=now + timedelta(minutes=current_app.config['OTP_EXPIRY_MINUTES']),
    )
    db.session.add(record)
    db.session.commit()
    return record


def send_code_email(email, code):
    minutes = current_app.config['OTP_EXPIRY_MINUTES']
    html = render_template('email/verification_code.html', code=code, minutes=minutes)
    text = f'Your verification code is: {code}. It will expire in {minutes} minutes.'
    return get_mailer().send(email, 'Your Verification Code', html, text=text)


def issue_code(email, now=None):
    """Generate and email a sign-in code for an allowlisted address

    Requests for the same address within the rate-limit window are refused
    unless a valid code is already out; an unexpired code is never sent
    twice.
    """
    email = normalize_email(email)
    if not email or '@' not in email:
        return CodeRequest(False, 'Valid email is required', 400)

    if not is_authorized_email(email):
        logger.warning('Sign-in code refused for unlisted address %s', email)
        return CodeRequest(False, 'Email not authorized', 403)

    now = now or datetime.utcnow()
    window = current_app.config['OTP_RATE_LIMIT_SECONDS']
    limiter = rate_limiter()

    if limiter.is_fresh(email, now):
        if has_valid_code(email, now):
            return CodeRequest(
                True,
                f'A code was already sent. Please check your email or wait {window} seconds to request a new one.',
                200,
            )
        return CodeRequest(
            False, f'Too many requests. Please wait {window} seconds before requesting another code.', 429
        )

    limiter.touch(email, now)

    if has_valid_code(email, now):
        return CodeRequest(True, f'Code already sent to {email}', 200)

    code = generate_code(current_app.config['OTP_LENGTH'])
    store_code(email, code, now)

    if not send_code_email(email, code):
        return CodeRequest(False, 'Failed to send code', 500)

    logger.info('Sign-in code sent to %s', email)
    return CodeRequest(True, f'Code sent to {email}', 200)


def verify_code(email, code, now=None):
    """Check a code; a matching code is consumed, an expired one discarded"""
    record = get_code(email)
    if record is None:
        return False

    if record.is_expired(now):
        db.session.delete(record)
        db.session.commit()
        return False

    if not hmac.compare_digest(record.code, (code or '').strip()):
        return False

    db.session.delete(record)
    db.session.commit()
    return True


def open_session(email, now=None):
    """Create a session for a verified address"""
    now = now or datetime.utcnow()
    record = UserSession(
        session_id=secrets.token_urlsafe(32),
        email=normalize_email(email),
        verified=True,
        created_at=now,
        expires_at=UserSession.expiry_from(now, current_app.config['SESSION_LIFETIME_HOURS']),
    )
    db.session.add(record)
    db.session.commit()
    return record


def load_session(session_id, now=None):
    """Session for ``session_id`` if it is unexpired and still allowlisted"""
    if not session_id:
        return None

    record = UserSession.query.filter_by(session_id=session_id).first()
    if record is None:
        return None

    if record.is_expired(now) or not is_authorized_email(record.email):
        db.session.delete(record)
        db.session.commit()
        return None

    return record


def close_session(record):
    db.session.delete(record)
    db.session.commit()
