"""Read-only balance projections for the dashboard

Everything here is a forecast for display. Nothing is written back, and the
daily rate comes from the ledger engine so projected and recorded interest
agree.
"""
from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP
from loantrack.ledger import (
    CENT, ZERO, STATUS_ACTIVE, daily_rate, day_count, to_money
)

DEFAULT_WINDOW_DAYS = 30

PortfolioSummary = namedtuple('PortfolioSummary', [
    'active_loans', 'total_principal', 'total_outstanding', 'projected_interest'
])


def project_interest(current_balance, annual_rate_percent, window_days, principal_paid_off):
    """Interest a balance would accrue over the next ``window_days`` days"""
    if principal_paid_off:
        return ZERO

    projected = to_money(current_balance) * daily_rate(annual_rate_percent) * Decimal(window_days)
    return projected.quantize(CENT, rounding=ROUND_HALF_UP)


def days_since_last_event(last_event_date, today):
    """Days between the last ledger event and today, for display"""
    if last_event_date is None:
        return 0
    return day_count(last_event_date, today)


def summarize_portfolio(loans, window_days=DEFAULT_WINDOW_DAYS):
    """Fold per-loan balances into dashboard totals

    ``loans`` are Loan models (or anything exposing ``status``,
    ``principal``, ``interest_rate``, ``current_balance()`` and
    ``is_principal_paid_off()``). Only active loans are counted.
    """
    count = 0
    total_principal = ZERO
    total_outstanding = ZERO
    projected = ZERO

    for loan in loans:
        if loan.status != STATUS_ACTIVE:
            continue

        balance = loan.current_balance()
        count += 1
        total_principal += to_money(loan.principal)
        total_outstanding += balance
        projected += project_interest(
            balance, loan.interest_rate, window_days, loan.is_principal_paid_off()
        )

    return PortfolioSummary(count, total_principal, total_outstanding, projected)
