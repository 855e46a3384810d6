"""Personal payment routes"""
from datetime import date
from flask import render_template, redirect, url_for, flash, request, abort
from flask_login import login_required
from loantrack import db
from loantrack.errors import NotFoundError
from loantrack.payments import payments_bp
from loantrack.payments.forms import PersonalPaymentForm, FinishPaymentForm
from loantrack.store import LedgerStore
from loantrack.utils.decorators import authorized_required
from loantrack.utils.helpers import log_activity


@payments_bp.route('/')
@login_required
@authorized_required
def list_payments():
    """List personal payments with their due status"""
    store = LedgerStore(db.session)
    search = request.args.get('search', '').strip()
    status = request.args.get('status', '')
    today = date.today()

    rows = []
    for payment in store.list_personal_payments(search=search or None):
        display_status = payment.display_status(today)
        if status and display_status != status:
            continue
        rows.append({
            'payment': payment,
            'status': display_status,
            'remaining_days': 0 if display_status == 'finished' else payment.remaining_days(today),
        })

    return render_template('payments/list.html',
                           title='Personal Payments',
                           rows=rows,
                           search=search,
                           status=status,
                           finish_form=FinishPaymentForm())


@payments_bp.route('/add', methods=['GET', 'POST'])
@login_required
@authorized_required
def add_payment():
    """Add personal payment"""
    form = PersonalPaymentForm()

    if form.validate_on_submit():
        store = LedgerStore(db.session)
        payment = store.add_personal_payment(
            name=form.name.data.strip(),
            amount=form.amount.data,
            start_date=form.start_date.data,
            due_date=form.due_date.data,
            notes=form.notes.data or None,
            status='pending',
        )
        log_activity('create_payment', entity_type='payment', entity_id=payment.id,
                     description=f'Added personal payment: {payment.name}')
        store.commit()

        flash(f'Payment "{payment.name}" added successfully!', 'success')
        return redirect(url_for('payments.list_payments'))

    return render_template('payments/add.html', title='Add Payment', form=form)


@payments_bp.route('/<int:id>/finish', methods=['POST'])
@login_required
@authorized_required
def finish_payment(id):
    """Mark a personal payment as paid"""
    form = FinishPaymentForm()
    if not form.validate_on_submit():
        flash('Invalid request.', 'danger')
        return redirect(url_for('payments.list_payments'))

    store = LedgerStore(db.session)
    try:
        payment = store.finish_personal_payment(id)
    except NotFoundError:
        abort(404)

    log_activity('finish_payment', entity_type='payment', entity_id=payment.id,
                 description=f'Marked personal payment as paid: {payment.name}')
    store.commit()

    flash(f'Payment "{payment.name}" marked as paid.', 'success')
    return redirect(url_for('payments.list_payments'))
