"""Ledger engine: interest accrual, balance chaining and status changes"""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
import pytest
from loantrack import ledger
from loantrack.errors import ValidationError


def make_loan(principal='10000', rate='12', term_months=12, start=date(2024, 1, 1),
              status=ledger.STATUS_ACTIVE):
    return SimpleNamespace(principal=Decimal(principal), interest_rate=Decimal(rate),
                           term_months=term_months, start_date=start, status=status)


def apply(loan, history, on_date, amount):
    """Record a payment and apply it the way the store would"""
    outcome = ledger.record_payment(loan, history, on_date, Decimal(amount))
    history.append(SimpleNamespace(**outcome.repayment))
    loan.status = outcome.status
    return outcome


def test_first_payment_accrues_thirty_days_interest():
    loan = make_loan()
    outcome = ledger.record_payment(loan, [], date(2024, 1, 31), Decimal('2000'))

    assert outcome.interest_amount == Decimal('98.63')
    assert outcome.repayment['remaining_balance'] == Decimal('8098.63')
    assert outcome.repayment['sequence'] == 1
    assert outcome.status == ledger.STATUS_ACTIVE


def test_principal_paid_then_finished():
    loan = make_loan()
    history = []
    apply(loan, history, date(2024, 1, 31), '2000')

    second = apply(loan, history, date(2024, 3, 1), '8000')
    assert second.interest_amount == Decimal('79.88')
    assert second.repayment['remaining_balance'] == Decimal('178.51')
    assert second.status == ledger.STATUS_PRINCIPAL_PAID

    # No interest once the principal is retired
    third = apply(loan, history, date(2024, 3, 15), '178.51')
    assert third.interest_amount == Decimal('0.00')
    assert third.principal_paid_off is True
    assert third.repayment['remaining_balance'] == Decimal('0.00')
    assert third.status == ledger.STATUS_FINISHED


def test_payment_larger_than_balance_is_rejected():
    loan = make_loan()
    history = []
    apply(loan, history, date(2024, 1, 31), '2000')

    with pytest.raises(ValidationError) as exc:
        ledger.record_payment(loan, history, date(2024, 3, 1), Decimal('8200'))
    assert exc.value.field == 'amount'
    assert len(history) == 1


@pytest.mark.parametrize('amount', ['0', '-5'])
def test_non_positive_amount_is_rejected(amount):
    with pytest.raises(ValidationError) as exc:
        ledger.record_payment(make_loan(), [], date(2024, 1, 10), Decimal(amount))
    assert exc.value.field == 'amount'


def test_same_day_payment_accrues_nothing():
    outcome = ledger.record_payment(make_loan(), [], date(2024, 1, 1), Decimal('500'))
    assert outcome.interest_amount == Decimal('0.00')
    assert outcome.repayment['remaining_balance'] == Decimal('9500.00')


def test_paying_exact_balance_finishes_loan():
    loan = make_loan(principal='1000')
    outcome = ledger.record_payment(loan, [], date(2024, 1, 1), Decimal('1000'))
    assert outcome.repayment['remaining_balance'] == Decimal('0.00')
    assert outcome.status == ledger.STATUS_FINISHED


def test_date_before_previous_repayment_is_rejected():
    loan = make_loan()
    history = []
    apply(loan, history, date(2024, 2, 1), '1000')

    with pytest.raises(ValidationError) as exc:
        ledger.record_payment(loan, history, date(2024, 1, 15), Decimal('100'))
    assert exc.value.field == 'date'


def test_date_before_start_is_rejected():
    with pytest.raises(ValidationError) as exc:
        ledger.record_payment(make_loan(), [], date(2023, 12, 31), Decimal('100'))
    assert exc.value.field == 'date'


def test_date_beyond_term_is_rejected():
    loan = make_loan(term_months=12)
    assert ledger.term_end_date(loan) == date(2025, 1, 1)

    ledger.record_payment(loan, [], date(2025, 1, 1), Decimal('100'))
    with pytest.raises(ValidationError) as exc:
        ledger.record_payment(loan, [], date(2025, 1, 2), Decimal('100'))
    assert exc.value.field == 'date'


def test_finished_loan_refuses_payments():
    loan = make_loan(status=ledger.STATUS_FINISHED)
    with pytest.raises(ValidationError) as exc:
        ledger.record_payment(loan, [], date(2024, 2, 1), Decimal('10'))
    assert exc.value.field == 'loan'


def test_backdated_interest_uses_absolute_day_count():
    previous = ledger.LedgerPoint(date(2024, 1, 31), Decimal('1000'))
    interest = ledger.compute_accrued_interest(previous, date(2024, 1, 1), Decimal('36.5'), False)
    assert interest == Decimal('30.00')


def test_no_interest_after_principal_paid_off():
    previous = ledger.LedgerPoint(date(2024, 1, 1), Decimal('500'))
    assert ledger.compute_accrued_interest(previous, date(2024, 6, 1), Decimal('12'), True) == Decimal('0.00')


def test_zero_rate_loan_never_accrues():
    loan = make_loan(rate='0')
    outcome = ledger.record_payment(loan, [], date(2024, 7, 1), Decimal('100'))
    assert outcome.interest_amount == Decimal('0.00')
    assert outcome.repayment['remaining_balance'] == Decimal('9900.00')


def test_balance_chain_holds_over_many_payments():
    loan = make_loan(principal='5000', rate='18', term_months=24)
    history = []
    payments = [(date(2024, 1, 20), '700'), (date(2024, 2, 20), '650.50'),
                (date(2024, 2, 20), '300'), (date(2024, 4, 2), '1200'),
                (date(2024, 6, 30), '2000')]
    paid_so_far = []
    for on_date, amount in payments:
        apply(loan, history, on_date, amount)
        paid_so_far.append(ledger.total_paid(history))

    for previous, entry in zip([None] + history[:-1], history):
        if previous is None:
            continue
        assert entry.remaining_balance == max(
            Decimal('0'), previous.remaining_balance - entry.amount_paid + entry.interest_amount
        )

    assert paid_so_far == sorted(paid_so_far)
    assert [r.sequence for r in history] == [1, 2, 3, 4, 5]
    assert ledger.replay_history(loan, history) == []


def test_replay_flags_tampered_balance():
    loan = make_loan()
    history = []
    apply(loan, history, date(2024, 1, 31), '2000')
    apply(loan, history, date(2024, 2, 29), '1000')
    history[1].remaining_balance = Decimal('7000.00')

    mismatches = ledger.replay_history(loan, history)
    assert len(mismatches) == 1
    assert mismatches[0].sequence == 2
    assert mismatches[0].field == 'remaining_balance'
    assert mismatches[0].stored == Decimal('7000.00')


def test_status_never_moves_backwards():
    assert ledger.advance_status(ledger.STATUS_ACTIVE, ledger.STATUS_PRINCIPAL_PAID) == ledger.STATUS_PRINCIPAL_PAID
    assert ledger.advance_status(ledger.STATUS_FINISHED, ledger.STATUS_FINISHED) == ledger.STATUS_FINISHED
    with pytest.raises(ValidationError):
        ledger.advance_status(ledger.STATUS_FINISHED, ledger.STATUS_ACTIVE)
    with pytest.raises(ValidationError):
        ledger.advance_status(ledger.STATUS_PRINCIPAL_PAID, ledger.STATUS_ACTIVE)


def test_mark_finished_writes_off_small_balance():
    loan = make_loan(principal='1000')
    history = []
    apply(loan, history, date(2024, 2, 1), '950')

    balance = ledger.current_balance(loan, history)
    outcome = ledger.mark_finished(loan, balance, date(2024, 2, 10), history)

    closing = outcome.closing_repayment
    assert outcome.status == ledger.STATUS_FINISHED
    assert closing['amount_paid'] == balance
    assert closing['interest_amount'] == Decimal('0.00')
    assert closing['remaining_balance'] == Decimal('0.00')
    assert closing['payment_method'] == ledger.SYSTEM_PAYMENT_METHOD
    assert closing['is_closing'] is True
    assert closing['sequence'] == 2


def test_mark_finished_at_fifty():
    outcome = ledger.mark_finished(make_loan(), Decimal('50'), date(2024, 5, 1))
    assert outcome.closing_repayment['amount_paid'] == Decimal('50.00')
    assert outcome.closing_repayment['remaining_balance'] == Decimal('0.00')
    assert outcome.status == ledger.STATUS_FINISHED


def test_mark_finished_with_zero_balance_adds_no_entry():
    outcome = ledger.mark_finished(make_loan(status=ledger.STATUS_PRINCIPAL_PAID), Decimal('0'))
    assert outcome.closing_repayment is None
    assert outcome.status == ledger.STATUS_FINISHED


def test_closing_entry_never_predates_last_repayment():
    loan = make_loan()
    history = []
    apply(loan, history, date(2024, 3, 1), '9990')
    outcome = ledger.mark_finished(loan, Decimal('20'), date(2024, 2, 1), history)
    assert outcome.closing_repayment['repayment_date'] == date(2024, 3, 1)


def test_money_rounds_half_up():
    assert ledger.to_money('2.345') == Decimal('2.35')
    assert ledger.to_money(None) == Decimal('0.00')


def test_closing_entry_never_predates_loan_start():
    loan = make_loan(start=date(2027, 1, 1))
    outcome = ledger.mark_finished(loan, Decimal('50'), date(2026, 10, 16))
    assert outcome.closing_repayment['repayment_date'] == date(2027, 1, 1)
