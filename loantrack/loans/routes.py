"""Loan management routes"""
from datetime import date
from flask import render_template, redirect, url_for, flash, request, current_app, jsonify, abort
from flask_login import login_required
from loantrack import db, ledger
from loantrack.errors import ValidationError, NotFoundError, TransientStoreError
from loantrack.loans import loans_bp
from loantrack.loans import services
from loantrack.loans.forms import LoanForm, RepaymentForm, FinishLoanForm, LoanNotesForm
from loantrack.models import Loan
from loantrack.store import LedgerStore
from loantrack.utils.decorators import authorized_required
from loantrack.utils.helpers import log_activity

# Maps ledger error fields onto form fields
REPAYMENT_FIELDS = {'amount': 'amount_paid', 'date': 'repayment_date'}
LOAN_FIELDS = {'first_name': 'first_name', 'principal': 'principal',
               'interest_rate': 'interest_rate', 'term_months': 'term_months',
               'payment_method': 'payment_method'}


def _get_store():
    return LedgerStore(db.session)


def _load_loan(store, id):
    try:
        return store.get_loan(id)
    except NotFoundError:
        abort(404)


def _attach_error(form, field_map, error):
    """Show a ledger validation error beside the field it concerns"""
    field_name = field_map.get(error.field)
    if field_name and field_name in form:
        form[field_name].errors = list(form[field_name].errors) + [error.message]
    else:
        flash(error.message, 'danger')


@loans_bp.route('/')
@login_required
@authorized_required
def list_loans():
    """List all loans"""
    page = request.args.get('page', 1, type=int)
    search = request.args.get('search', '').strip()
    status = request.args.get('status', '')

    query = Loan.query

    if search:
        query = query.filter(
            db.or_(
                Loan.first_name.ilike(f'%{search}%'),
                Loan.last_name.ilike(f'%{search}%'),
                Loan.notes.ilike(f'%{search}%')
            )
        )

    if status:
        query = query.filter_by(status=status)

    loans = query.order_by(Loan.created_at.desc(), Loan.id.desc()).paginate(
        page=page, per_page=current_app.config['ITEMS_PER_PAGE'], error_out=False
    )

    return render_template('loans/list.html',
                           title='Loans',
                           loans=loans,
                           search=search,
                           status=status,
                           statuses=ledger.STATUS_LABELS)


@loans_bp.route('/add', methods=['GET', 'POST'])
@login_required
@authorized_required
def add_loan():
    """Add new loan"""
    form = LoanForm()

    if form.validate_on_submit():
        store = _get_store()
        try:
            loan = services.create_loan(
                store,
                first_name=form.first_name.data,
                last_name=form.last_name.data,
                principal=form.principal.data,
                interest_rate=form.interest_rate.data or 0,
                term_months=form.term_months.data,
                start_date=form.start_date.data,
                payment_method=form.payment_method.data,
                notes=form.notes.data or None,
            )
        except ValidationError as e:
            _attach_error(form, LOAN_FIELDS, e)
            return render_template('loans/add.html', title='Add Loan', form=form), 400
        except TransientStoreError as e:
            flash(str(e), 'danger')
            return render_template('loans/add.html', title='Add Loan', form=form), 503

        log_activity('create_loan', entity_type='loan', entity_id=loan.id,
                     description=f'Created loan for {loan.full_name}: {loan.principal}')
        db.session.commit()

        flash(f'Loan for {loan.full_name} created successfully!', 'success')
        return redirect(url_for('loans.view_loan', id=loan.id))

    return render_template('loans/add.html', title='Add Loan', form=form)


@loans_bp.route('/<int:id>')
@login_required
@authorized_required
def view_loan(id):
    """View loan details and repayment history"""
    store = _get_store()
    loan = _load_loan(store, id)
    history = store.repayments(id)

    balance = ledger.current_balance(loan, history)
    paid_off = ledger.principal_paid_off(loan, history)
    window = current_app.config['PROJECTION_WINDOW_DAYS']
    threshold = current_app.config['MARK_FINISHED_THRESHOLD']

    mismatches = ledger.replay_history(loan, history)
    if mismatches:
        current_app.logger.warning('Loan %s ledger disagrees with replay at %d point(s)',
                                   loan.id, len(mismatches))

    return render_template('loans/view.html',
                           title=f'Loan: {loan.full_name}',
                           loan=loan,
                           repayments=list(reversed(history)),
                           balance=balance,
                           total_paid=ledger.total_paid(history),
                           principal_paid_off=paid_off,
                           days_since_last=loan.days_since_last_event(),
                           projected_interest=loan.projected_interest(window),
                           window_days=window,
                           can_finish=(loan.status != ledger.STATUS_FINISHED and 0 < balance < threshold),
                           mismatches=mismatches,
                           finish_form=FinishLoanForm(),
                           notes_form=LoanNotesForm(notes=loan.notes))


@loans_bp.route('/<int:id>/payment', methods=['GET', 'POST'])
@login_required
@authorized_required
def add_payment(id):
    """Record a repayment"""
    store = _get_store()
    loan = _load_loan(store, id)

    if loan.status == ledger.STATUS_FINISHED:
        flash('This loan is already finished.', 'warning')
        return redirect(url_for('loans.view_loan', id=id))

    form = RepaymentForm()
    if request.method == 'GET':
        form.payment_method.data = loan.payment_method

    context = dict(title=f'Record Payment: {loan.full_name}', form=form, loan=loan,
                   balance=loan.current_balance(), term_end=loan.term_end_date)

    if form.validate_on_submit():
        try:
            repayment, outcome = services.submit_repayment(
                store, id,
                form.repayment_date.data,
                form.amount_paid.data,
                form.payment_method.data,
                form.notes.data or None,
            )
        except ValidationError as e:
            _attach_error(form, REPAYMENT_FIELDS, e)
            return render_template('loans/payment.html', **context), 400
        except TransientStoreError as e:
            flash(str(e), 'danger')
            return render_template('loans/payment.html', **context), 503

        log_activity('add_repayment', entity_type='repayment', entity_id=repayment.id,
                     description=f'Repayment of {repayment.amount_paid} on loan {id}')
        db.session.commit()

        flash('Payment recorded successfully!', 'success')
        if outcome.status != outcome.previous_status:
            if outcome.status == ledger.STATUS_FINISHED:
                flash('The loan is now fully repaid and finished.', 'success')
            elif outcome.status == ledger.STATUS_PRINCIPAL_PAID:
                flash('Principal has been paid off; no further interest will accrue.', 'info')
        return redirect(url_for('loans.view_loan', id=id))

    return render_template('loans/payment.html', **context)


@loans_bp.route('/<int:id>/finish', methods=['POST'])
@login_required
@authorized_required
def finish_loan(id):
    """Close a loan whose remaining balance is small"""
    store = _get_store()
    _load_loan(store, id)

    form = FinishLoanForm()
    if not form.validate_on_submit():
        flash('Invalid request.', 'danger')
        return redirect(url_for('loans.view_loan', id=id))

    try:
        closing, outcome = services.finish_loan(
            store, id, date.today(), threshold=current_app.config['MARK_FINISHED_THRESHOLD']
        )
    except ValidationError as e:
        flash(e.message, 'danger')
        return redirect(url_for('loans.view_loan', id=id))
    except TransientStoreError as e:
        flash(str(e), 'danger')
        return redirect(url_for('loans.view_loan', id=id))

    written_off = closing.amount_paid if closing else 0
    log_activity('finish_loan', entity_type='loan', entity_id=id,
                 description=f'Marked loan {id} as finished, wrote off {written_off}')
    db.session.commit()

    flash('Loan marked as finished.', 'success')
    return redirect(url_for('loans.view_loan', id=id))


@loans_bp.route('/<int:id>/notes', methods=['POST'])
@login_required
@authorized_required
def update_notes(id):
    """Save the loan's notes"""
    store = _get_store()
    _load_loan(store, id)

    form = LoanNotesForm()
    if form.validate_on_submit():
        try:
            services.update_loan_notes(store, id, form.notes.data or None)
        except TransientStoreError as e:
            flash(str(e), 'danger')
        else:
            flash('Notes updated.', 'success')

    return redirect(url_for('loans.view_loan', id=id))


@loans_bp.route('/<int:id>/series')
@login_required
@authorized_required
def loan_series(id):
    """Chart data: balance after every ledger event"""
    store = _get_store()
    loan = _load_loan(store, id)
    history = store.repayments(id)

    points = [{
        'date': loan.start_date.isoformat(),
        'balance': float(ledger.to_money(loan.principal)),
        'interest': 0.0,
        'paid': 0.0,
    }]
    for repayment in history:
        points.append({
            'date': repayment.repayment_date.isoformat(),
            'balance': float(repayment.remaining_balance),
            'interest': float(repayment.interest_amount),
            'paid': float(repayment.amount_paid),
        })

    return jsonify({
        'loan_id': loan.id,
        'name': loan.full_name,
        'status': loan.status,
        'points': points,
    })
