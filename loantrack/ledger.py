"""Loan ledger engine

Pure computation over a loan's terms and its repayment history. Nothing in
this module touches the database: callers pass in a loan (anything with
``principal``, ``interest_rate``, ``term_months``, ``start_date`` and
``status``) and its repayments ordered oldest first (anything with
``repayment_date``, ``amount_paid``, ``interest_amount``,
``remaining_balance``), and persist what comes back.
"""
from collections import namedtuple
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from dateutil.relativedelta import relativedelta
from loantrack.errors import ValidationError

STATUS_ACTIVE = 'active'
STATUS_PRINCIPAL_PAID = 'principal_paid'
STATUS_FINISHED = 'finished'

# Position of each status in the lifecycle; a loan only moves forward
STATUS_ORDER = {
    STATUS_ACTIVE: 0,
    STATUS_PRINCIPAL_PAID: 1,
    STATUS_FINISHED: 2,
}

STATUS_LABELS = {
    STATUS_ACTIVE: 'Active',
    STATUS_PRINCIPAL_PAID: 'Principal Paid',
    STATUS_FINISHED: 'Finished',
}

PAYMENT_METHODS = ['Cash', 'UPI', 'Bank']
SYSTEM_PAYMENT_METHOD = 'System'
CLOSING_NOTE = 'Loan marked as finished'

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

# Previous ledger state: the latest repayment, or the loan origin
LedgerPoint = namedtuple('LedgerPoint', ['date', 'balance'])

PaymentOutcome = namedtuple('PaymentOutcome', [
    'repayment', 'status', 'previous_status', 'principal_paid_off', 'interest_amount'
])

FinishOutcome = namedtuple('FinishOutcome', ['closing_repayment', 'status'])

ReplayMismatch = namedtuple('ReplayMismatch', ['sequence', 'field', 'stored', 'expected'])


def to_money(value):
    """Convert a number to a Decimal rounded half-up to cents"""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def daily_rate(annual_rate_percent):
    """Daily rate for an annual percentage, on a 365 day year

    Shared by accrual and projection so displayed and recorded interest
    never use different formulas.
    """
    return Decimal(str(annual_rate_percent)) / Decimal('100') / Decimal('365')


def day_count(start, end):
    """Whole calendar days between two dates, always non-negative"""
    return abs((end - start).days)


def origin_point(loan):
    """Ledger state before any repayment: principal on the start date"""
    return LedgerPoint(loan.start_date, to_money(loan.principal))


def latest_point(loan, history):
    """Ledger state after the most recent repayment (or the origin)"""
    if history:
        last = history[-1]
        return LedgerPoint(last.repayment_date, to_money(last.remaining_balance))
    return origin_point(loan)


def current_balance(loan, history):
    """Outstanding balance: latest repayment's balance, or the principal"""
    return latest_point(loan, history).balance


def total_paid(history):
    """Sum of amounts paid across a repayment history"""
    return sum((to_money(r.amount_paid) for r in history), ZERO)


def principal_paid_off(loan, history):
    """True once cumulative payments have reached the principal"""
    return total_paid(history) >= to_money(loan.principal)


def term_end_date(loan):
    """Last date a repayment may be recorded on"""
    return loan.start_date + relativedelta(months=loan.term_months)


def compute_accrued_interest(previous, as_of, annual_rate_percent, principal_paid_off):
    """Simple interest on the previous balance between two ledger events

    Returns zero once principal has been retired. The day count is an
    absolute difference, so an ``as_of`` before ``previous.date`` still
    accrues; ordering is validated by :func:`record_payment`.
    """
    if principal_paid_off:
        return ZERO

    days = day_count(previous.date, as_of)
    interest = to_money(previous.balance) * daily_rate(annual_rate_percent) * Decimal(days)
    return interest.quantize(CENT, rounding=ROUND_HALF_UP)


def advance_status(current, target):
    """Move a loan status forward; staying put is allowed, going back is not"""
    if target not in STATUS_ORDER:
        raise ValidationError('status', f'Unknown loan status: {target}')
    if STATUS_ORDER[target] < STATUS_ORDER.get(current, 0):
        raise ValidationError('status', f'Loan cannot move from {current} back to {target}')
    return target


def validate_payment(loan, history, proposed_date, proposed_amount):
    """Check a proposed repayment against the loan's current state

    Raises :class:`ValidationError` naming the offending field.
    """
    if loan.status == STATUS_FINISHED:
        raise ValidationError('loan', 'This loan is already finished')

    amount = to_money(proposed_amount)
    if amount <= 0:
        raise ValidationError('amount', 'Amount must be greater than zero')

    previous = latest_point(loan, history)
    if amount > previous.balance:
        raise ValidationError(
            'amount', f'Amount cannot exceed remaining balance ({previous.balance:,.2f})'
        )

    if proposed_date < previous.date:
        label = 'previous repayment' if history else 'loan start date'
        raise ValidationError(
            'date', f'Date must be on or after the {label} ({previous.date.isoformat()})'
        )

    end_date = term_end_date(loan)
    if proposed_date > end_date:
        raise ValidationError(
            'date', f'Date cannot exceed loan term (ends {end_date.isoformat()})'
        )

    return amount


def record_payment(loan, history, proposed_date, proposed_amount,
                   payment_method='Cash', notes=None):
    """Turn a proposed repayment into the next ledger entry

    ``history`` must be ordered oldest first. Returns a
    :data:`PaymentOutcome` whose ``repayment`` is a dict of column values
    for the new entry and whose ``status`` is the loan status after it.
    """
    amount = validate_payment(loan, history, proposed_date, proposed_amount)

    previous = latest_point(loan, history)
    paid_so_far = total_paid(history)
    principal = to_money(loan.principal)
    paid_off = paid_so_far >= principal

    interest = compute_accrued_interest(previous, proposed_date, loan.interest_rate, paid_off)

    if paid_off:
        new_balance = previous.balance - amount
    else:
        new_balance = previous.balance - amount + interest
    new_balance = max(ZERO, new_balance)

    status = loan.status or STATUS_ACTIVE
    if paid_so_far + amount >= principal and status == STATUS_ACTIVE:
        status = advance_status(status, STATUS_PRINCIPAL_PAID)
    if new_balance <= 0:
        status = advance_status(status, STATUS_FINISHED)

    repayment = {
        'sequence': len(history) + 1,
        'repayment_date': proposed_date,
        'amount_paid': amount,
        'interest_amount': interest,
        'remaining_balance': new_balance,
        'payment_method': payment_method,
        'notes': notes,
        'is_closing': False,
    }

    return PaymentOutcome(repayment, status, loan.status, paid_off, interest)


def mark_finished(loan, current_remaining_balance, on_date=None, history=None):
    """Close a loan, writing off whatever balance is left

    A positive balance produces a system-generated closing entry that pays
    it off exactly; a zero balance produces none. The result status is
    always ``finished``.
    """
    balance = max(ZERO, to_money(current_remaining_balance))
    history = history or []
    status = advance_status(loan.status or STATUS_ACTIVE, STATUS_FINISHED)

    if balance == 0:
        return FinishOutcome(None, status)

    closing_date = max(on_date or date.today(), latest_point(loan, history).date)

    closing = {
        'sequence': len(history) + 1,
        'repayment_date': closing_date,
        'amount_paid': balance,
        'interest_amount': ZERO,
        'remaining_balance': ZERO,
        'payment_method': SYSTEM_PAYMENT_METHOD,
        'notes': CLOSING_NOTE,
        'is_closing': True,
    }
    return FinishOutcome(closing, status)


def replay_history(loan, history):
    """Recompute a stored repayment chain and list where it disagrees

    Each entry is checked against the entry before it with the same rules
    :func:`record_payment` applies. Closing entries only need to land on a
    zero balance.
    """
    mismatches = []
    replayed = []
    principal = to_money(loan.principal)

    for index, entry in enumerate(history, start=1):
        sequence = getattr(entry, 'sequence', None) or index
        stored_balance = to_money(entry.remaining_balance)

        if getattr(entry, 'is_closing', False):
            if stored_balance != 0:
                mismatches.append(ReplayMismatch(sequence, 'remaining_balance', stored_balance, ZERO))
            replayed.append(entry)
            continue

        previous = latest_point(loan, replayed)
        paid_off = total_paid(replayed) >= principal
        interest = compute_accrued_interest(previous, entry.repayment_date, loan.interest_rate, paid_off)
        amount = to_money(entry.amount_paid)

        if paid_off:
            expected = max(ZERO, previous.balance - amount)
        else:
            expected = max(ZERO, previous.balance - amount + interest)

        stored_interest = to_money(entry.interest_amount)
        if stored_interest != interest:
            mismatches.append(ReplayMismatch(sequence, 'interest_amount', stored_interest, interest))
        if stored_balance != expected:
            mismatches.append(ReplayMismatch(sequence, 'remaining_balance', stored_balance, expected))

        replayed.append(entry)

    return mismatches
