"""Payment reminder routes"""
from datetime import date
from flask import render_template, jsonify, current_app
from flask_login import login_required
from loantrack import db
from loantrack.reminders import reminders_bp
from loantrack.reminders.tasks import send_payment_reminders, pending_reminder_rows
from loantrack.store import LedgerStore
from loantrack.utils.decorators import authorized_required, reminder_access_required
from loantrack.utils.helpers import parse_allowlist


@reminders_bp.route('/')
@login_required
@authorized_required
def index():
    """Pending reminder overview"""
    rows = pending_reminder_rows(LedgerStore(db.session), date.today())
    recipients = parse_allowlist(current_app.config.get('AUTHORIZED_EMAILS', ''))
    return render_template('reminders/index.html',
                           title='Payment Reminders',
                           rows=rows,
                           recipients=recipients)


@reminders_bp.route('/send', methods=['GET', 'POST'])
@reminder_access_required
def send():
    """Send the weekly reminder now"""
    try:
        report = send_payment_reminders()
    except Exception:
        current_app.logger.exception('Payment reminder job failed')
        return jsonify({'success': False, 'error': 'Reminder job failed'}), 500

    if report.pending == 0:
        return jsonify({'success': True, 'message': 'No pending payments', 'pending': 0, 'sent': 0})

    body = {
        'pending': report.pending,
        'sent': report.sent,
        'results': [{'email': r.email, 'success': r.success} for r in report.results],
    }
    if report.sent == 0:
        body.update(success=False, error='No reminder emails were sent')
        return jsonify(body), 500

    body.update(success=True, message=f'Reminders sent for {report.pending} pending payment(s)')
    return jsonify(body)
