"""Main routes"""
from datetime import date
from flask import render_template, request, current_app
from flask_login import login_required
from loantrack import db, ledger
from loantrack.main import main_bp
from loantrack.projection import summarize_portfolio
from loantrack.store import LedgerStore
from loantrack.utils.decorators import authorized_required


@main_bp.route('/')
@main_bp.route('/dashboard')
@login_required
@authorized_required
def dashboard():
    """Main dashboard"""
    store = LedgerStore(db.session)
    search = request.args.get('search', '').strip()
    window = current_app.config['PROJECTION_WINDOW_DAYS']
    today = date.today()

    loans = store.list_loans(search=search or None)
    summary = summarize_portfolio(store.list_loans(status=ledger.STATUS_ACTIVE), window)

    rows = []
    for loan in loans:
        rows.append({
            'loan': loan,
            'balance': loan.current_balance(),
            'days_since_last': loan.days_since_last_event(today),
        })

    # Upcoming personal payments
    pending_payments = store.list_personal_payments(status='pending')[:5]

    return render_template('main/dashboard.html',
                           title='Dashboard',
                           rows=rows,
                           summary=summary,
                           search=search,
                           window_days=window,
                           pending_payments=pending_payments)


@main_bp.route('/analytics')
@login_required
@authorized_required
def analytics():
    """Portfolio totals and per-loan breakdown"""
    store = LedgerStore(db.session)
    window = current_app.config['PROJECTION_WINDOW_DAYS']

    loans = store.list_loans()
    summary = summarize_portfolio(loans, window)

    status_counts = {status: 0 for status in ledger.STATUS_ORDER}
    for loan in loans:
        status_counts[loan.status] = status_counts.get(loan.status, 0) + 1

    breakdown = []
    for loan in loans:
        if loan.status != ledger.STATUS_ACTIVE:
            continue
        breakdown.append({
            'loan': loan,
            'balance': loan.current_balance(),
            'total_paid': loan.total_paid(),
            'projected_interest': loan.projected_interest(window),
        })
    breakdown.sort(key=lambda row: row['balance'], reverse=True)

    return render_template('main/analytics.html',
                           title='Analytics',
                           summary=summary,
                           status_counts=status_counts,
                           status_labels=ledger.STATUS_LABELS,
                           breakdown=breakdown,
                           window_days=window)
