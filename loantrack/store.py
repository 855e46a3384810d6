"""Data access for loans, repayments and personal payments

The SQLAlchemy session is passed in, so the same store works against the
app's ``db.session`` or any other session a caller hands it.
"""
from decimal import Decimal
from sqlalchemy import or_
from loantrack.errors import NotFoundError
from loantrack.models import Loan, Repayment, PersonalPayment


class LedgerStore:
    """Read/write operations the ledger needs from the database"""

    def __init__(self, session):
        self.session = session

    # Loans
    def get_loan(self, loan_id):
        loan = self.session.get(Loan, loan_id)
        if loan is None:
            raise NotFoundError(f'Loan {loan_id} not found')
        return loan

    def list_loans(self, status=None, search=None):
        """All loans, newest first"""
        query = self.session.query(Loan)
        if status:
            query = query.filter(Loan.status == status)
        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(
                Loan.first_name.ilike(pattern),
                Loan.last_name.ilike(pattern),
                Loan.notes.ilike(pattern),
            ))
        return query.order_by(Loan.created_at.desc(), Loan.id.desc()).all()

    def add_loan(self, **fields):
        loan = Loan(**fields)
        self.session.add(loan)
        self.session.flush()
        return loan

    def update_status(self, loan, status):
        loan.status = status
        return loan

    def update_notes(self, loan, notes):
        loan.notes = notes
        return loan

    # Repayments
    def repayments(self, loan_id, descending=False):
        order = Repayment.sequence.desc() if descending else Repayment.sequence
        return (self.session.query(Repayment)
                .filter(Repayment.loan_id == loan_id)
                .order_by(order)
                .all())

    def latest_repayment(self, loan_id):
        return (self.session.query(Repayment)
                .filter(Repayment.loan_id == loan_id)
                .order_by(Repayment.sequence.desc())
                .first())

    def insert_repayment(self, loan, entry):
        repayment = Repayment(loan_id=loan.id, **entry)
        self.session.add(repayment)
        self.session.flush()
        return repayment

    # Personal payments
    def list_personal_payments(self, status=None, search=None):
        """Personal payments, soonest due first"""
        query = self.session.query(PersonalPayment)
        if status:
            query = query.filter(PersonalPayment.status == status)
        if search:
            query = query.filter(PersonalPayment.name.ilike(f'%{search.strip()}%'))
        return query.order_by(PersonalPayment.due_date, PersonalPayment.id).all()

    def get_personal_payment(self, payment_id):
        payment = self.session.get(PersonalPayment, payment_id)
        if payment is None:
            raise NotFoundError(f'Payment {payment_id} not found')
        return payment

    def add_personal_payment(self, **fields):
        fields['amount'] = Decimal(str(fields['amount']))
        payment = PersonalPayment(**fields)
        self.session.add(payment)
        self.session.flush()
        return payment

    def finish_personal_payment(self, payment_id):
        payment = self.get_personal_payment(payment_id)
        payment.status = 'finished'
        return payment

    # Transactions
    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()
