"""Weekly personal payment reminder job

Collects pending personal payments, renders them into one HTML summary and
mails it to every allowlisted address. Run from cron through
``python run.py send-reminders`` or from the ``/reminders/send`` endpoint.
"""
import logging
from collections import namedtuple
from datetime import date
from flask import current_app, render_template
from loantrack import db
from loantrack.store import LedgerStore
from loantrack.utils.helpers import parse_allowlist
from loantrack.utils.mailer import get_mailer

logger = logging.getLogger(__name__)

URGENT_DAYS = 3

ReminderReport = namedtuple('ReminderReport', ['pending', 'sent', 'results'])
ReminderResult = namedtuple('ReminderResult', ['email', 'success'])


def pending_reminder_rows(store, today):
    """Pending payments, soonest due first, with days left until due"""
    rows = []
    for payment in store.list_personal_payments(status='pending'):
        remaining = payment.remaining_days(today)
        rows.append({
            'payment': payment,
            'remaining_days': remaining,
            'urgent': remaining < URGENT_DAYS,
        })
    return rows


def reminder_subject(count):
    subject = current_app.config.get('PAYMENT_REMINDER_SUBJECT')
    if subject:
        return subject
    noun = 'Payment' if count == 1 else 'Payments'
    return f'Payment Reminder - {count} Pending {noun}'


def send_payment_reminders(today=None, store=None):
    """Email the pending payment summary to every allowlisted address

    Returns a :data:`ReminderReport`. Nothing is sent when there are no
    pending payments.
    """
    today = today or date.today()
    store = store or LedgerStore(db.session)

    rows = pending_reminder_rows(store, today)
    if not rows:
        logger.info('No pending payments, no reminders sent')
        return ReminderReport(0, 0, [])

    recipients = parse_allowlist(current_app.config.get('AUTHORIZED_EMAILS', ''))
    if not recipients:
        logger.error('No authorized emails configured, cannot send reminders')
        return ReminderReport(len(rows), 0, [])

    html = render_template('email/payment_reminder.html', rows=rows, today=today,
                           urgent_days=URGENT_DAYS)
    subject = reminder_subject(len(rows))
    sender = current_app.config.get('PAYMENT_REMINDER_FROM')
    mailer = get_mailer()

    results = []
    for email in recipients:
        success = mailer.send(email, subject, html, sender=sender)
        if not success:
            logger.warning('Payment reminder to %s failed', email)
        results.append(ReminderResult(email, success))

    sent = sum(1 for r in results if r.success)
    logger.info('Sent payment reminders for %d pending payment(s) to %d/%d recipient(s)',
                len(rows), sent, len(recipients))
    return ReminderReport(len(rows), sent, results)
