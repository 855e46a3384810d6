"""Ledger write path

Every write reads the loan's current ledger, computes the next entry with
:mod:`loantrack.ledger` and appends it in one transaction. The unique
``(loan_id, sequence)`` constraint turns a concurrent writer that computed
from the same previous entry into an ``IntegrityError``; such conflicts and
store timeouts are retried once before the caller is asked to resubmit.
"""
import logging
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from loantrack import ledger
from loantrack.errors import LedgerError, TransientStoreError, ValidationError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2
RETRYABLE_ERRORS = (IntegrityError, OperationalError, PoolTimeoutError)


def _run_serialized(store, description, operation):
    """Run ``operation()`` and commit, retrying once on a transient fault"""
    last_error = None
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            result = operation()
            store.commit()
            return result
        except LedgerError:
            store.rollback()
            raise
        except RETRYABLE_ERRORS as e:
            store.rollback()
            last_error = e
            logger.warning('%s failed on attempt %d/%d: %s',
                           description, attempt, MAX_ATTEMPTS, e.__class__.__name__)

    logger.error('%s gave up after %d attempts', description, MAX_ATTEMPTS)
    raise TransientStoreError(
        'Could not save the change right now, please resubmit.'
    ) from last_error


def create_loan(store, first_name, last_name, principal, interest_rate, term_months,
                start_date, payment_method='Cash', notes=None):
    """Validate and store a new active loan"""
    first_name = (first_name or '').strip()
    last_name = (last_name or '').strip()
    if not first_name or not last_name:
        raise ValidationError('first_name', 'First name and last name are required')
    if Decimal(str(principal)) <= 0:
        raise ValidationError('principal', 'Loan amount must be greater than zero')
    if Decimal(str(interest_rate)) < 0:
        raise ValidationError('interest_rate', 'Interest rate cannot be negative')
    if not term_months or int(term_months) <= 0:
        raise ValidationError('term_months', 'Loan term must be greater than zero')
    if payment_method not in ledger.PAYMENT_METHODS:
        raise ValidationError('payment_method', f'Unknown payment method: {payment_method}')

    def operation():
        return store.add_loan(
            first_name=first_name,
            last_name=last_name,
            principal=ledger.to_money(principal),
            interest_rate=Decimal(str(interest_rate)),
            term_months=int(term_months),
            start_date=start_date,
            payment_method=payment_method,
            notes=notes,
            status=ledger.STATUS_ACTIVE,
        )

    loan = _run_serialized(store, 'Creating loan', operation)
    logger.info('Created loan %s for %s', loan.id, loan.full_name)
    return loan


def submit_repayment(store, loan_id, repayment_date, amount, payment_method='Cash', notes=None):
    """Record a repayment against a loan

    Returns ``(repayment, outcome)`` where ``outcome`` is the
    :data:`loantrack.ledger.PaymentOutcome` the entry was built from.
    Raises ``ValidationError`` (nothing written), ``NotFoundError`` or
    ``TransientStoreError``.
    """
    def operation():
        loan = store.get_loan(loan_id)
        history = store.repayments(loan_id)
        try:
            outcome = ledger.record_payment(loan, history, repayment_date, amount,
                                            payment_method, notes)
        except ValidationError as e:
            logger.warning('Rejected repayment for loan %s: %s', loan_id, e.message)
            raise
        repayment = store.insert_repayment(loan, outcome.repayment)
        if outcome.status != loan.status:
            store.update_status(loan, outcome.status)
        return repayment, outcome

    repayment, outcome = _run_serialized(store, f'Repayment for loan {loan_id}', operation)
    logger.info('Recorded repayment #%s of %s for loan %s (interest %s, balance %s, status %s)',
                repayment.sequence, outcome.repayment['amount_paid'], loan_id,
                outcome.interest_amount, outcome.repayment['remaining_balance'], outcome.status)
    return repayment, outcome


def finish_loan(store, loan_id, on_date=None, threshold=None):
    """Mark a loan finished, writing off any small remaining balance

    With ``threshold`` set, only loans whose balance is below it may be
    closed this way.
    """
    def operation():
        loan = store.get_loan(loan_id)
        history = store.repayments(loan_id)
        balance = ledger.current_balance(loan, history)
        if threshold is not None and balance >= Decimal(str(threshold)):
            raise ValidationError(
                'loan', f'Only loans with a remaining balance under {threshold} can be marked as finished'
            )
        outcome = ledger.mark_finished(loan, balance, on_date or date.today(), history)
        closing = None
        if outcome.closing_repayment:
            closing = store.insert_repayment(loan, outcome.closing_repayment)
        store.update_status(loan, outcome.status)
        return closing, outcome

    closing, outcome = _run_serialized(store, f'Finishing loan {loan_id}', operation)
    if closing:
        logger.info('Loan %s marked finished, wrote off %s', loan_id, closing.amount_paid)
    else:
        logger.info('Loan %s marked finished', loan_id)
    return closing, outcome


def update_loan_notes(store, loan_id, notes):
    """Replace a loan's free-text notes"""
    def operation():
        loan = store.get_loan(loan_id)
        return store.update_notes(loan, notes)

    return _run_serialized(store, f'Updating notes on loan {loan_id}', operation)
