"""Database models for the loan tracker"""
from datetime import datetime, date, timedelta
from flask_login import UserMixin
from loantrack import db, login_manager
from loantrack import ledger
from loantrack.projection import project_interest, days_since_last_event


@login_manager.user_loader
def load_user(session_id):
    from loantrack.auth.otp import load_session
    return load_session(session_id)


# Loan Models
class Loan(db.Model):
    """A loan given to a borrower"""
    __tablename__ = 'loans'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)

    # Terms, fixed once the loan is created
    principal = db.Column(db.Numeric(15, 2), nullable=False)
    interest_rate = db.Column(db.Numeric(5, 2), nullable=False)  # Annual percentage rate
    term_months = db.Column(db.Integer, nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False, default='Cash')  # Cash, UPI, Bank

    # active -> principal_paid -> finished
    status = db.Column(db.String(20), nullable=False, default=ledger.STATUS_ACTIVE, index=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # Relationships
    repayments = db.relationship('Repayment', backref='loan', lazy='dynamic',
                                 order_by='Repayment.sequence')

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

    @property
    def status_label(self):
        return ledger.STATUS_LABELS.get(self.status, self.status)

    @property
    def term_end_date(self):
        return ledger.term_end_date(self)

    def history(self):
        """Repayments oldest first"""
        return self.repayments.order_by(None).order_by(Repayment.sequence).all()

    def latest_repayment(self):
        return self.repayments.order_by(None).order_by(Repayment.sequence.desc()).first()

    def current_balance(self):
        """Latest remaining balance, or the principal if nothing was repaid"""
        latest = self.latest_repayment()
        if latest:
            return ledger.to_money(latest.remaining_balance)
        return ledger.to_money(self.principal)

    def total_paid(self):
        total = self.repayments.order_by(None).with_entities(db.func.sum(Repayment.amount_paid)).scalar()
        return ledger.to_money(total or 0)

    def is_principal_paid_off(self):
        return self.total_paid() >= ledger.to_money(self.principal)

    def days_since_last_event(self, today=None):
        """Days since the last repayment; zero when there is none yet"""
        latest = self.latest_repayment()
        if not latest:
            return 0
        return days_since_last_event(latest.repayment_date, today or date.today())

    def projected_interest(self, window_days=30):
        """Interest expected over the next window if nothing is repaid"""
        return project_interest(self.current_balance(), self.interest_rate,
                                window_days, self.is_principal_paid_off())

    def __repr__(self):
        return f'<Loan {self.id} - {self.full_name}>'


class Repayment(db.Model):
    """One entry in a loan's append-only repayment ledger"""
    __tablename__ = 'repayments'
    __table_args__ = (
        # Two writers computing from the same previous entry cannot both land
        db.UniqueConstraint('loan_id', 'sequence', name='uq_repayments_loan_sequence'),
    )

    id = db.Column(db.Integer, primary_key=True)
    loan_id = db.Column(db.Integer, db.ForeignKey('loans.id'), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)

    repayment_date = db.Column(db.Date, nullable=False, index=True)
    amount_paid = db.Column(db.Numeric(15, 2), nullable=False)
    interest_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    remaining_balance = db.Column(db.Numeric(15, 2), nullable=False)

    payment_method = db.Column(db.String(20))  # Cash, UPI, Bank, System
    notes = db.Column(db.Text)
    is_closing = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Repayment {self.loan_id}#{self.sequence}>'


# Personal bill tracking
class PersonalPayment(db.Model):
    """A recurring personal payment to be reminded about"""
    __tablename__ = 'personal_payments'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    notes = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)  # pending, finished
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def display_status(self, today=None):
        """finished, exceeded (past due) or pending"""
        if self.status == 'finished':
            return 'finished'
        if (today or date.today()) > self.due_date:
            return 'exceeded'
        return 'pending'

    def remaining_days(self, today=None):
        """Days until due; negative once overdue"""
        return (self.due_date - (today or date.today())).days

    def __repr__(self):
        return f'<PersonalPayment {self.name}>'


# Sign-in models
class OneTimeCode(db.Model):
    """Emailed sign-in code, one per address"""
    __tablename__ = 'otps'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    code = db.Column(db.String(12), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def is_expired(self, now=None):
        return (now or datetime.utcnow()) > self.expires_at

    def __repr__(self):
        return f'<OneTimeCode {self.email}>'


class UserSession(UserMixin, db.Model):
    """Signed-in browser session, also the Flask-Login user object"""
    __tablename__ = 'user_sessions'

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), nullable=False, index=True)
    verified = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    def get_id(self):
        return self.session_id

    def is_expired(self, now=None):
        return (now or datetime.utcnow()) > self.expires_at

    @staticmethod
    def expiry_from(now, hours):
        return now + timedelta(hours=hours)

    def __repr__(self):
        return f'<UserSession {self.email}>'


# Activity Log Model
class ActivityLog(db.Model):
    """Activity log for audit trail"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), index=True)
    action = db.Column(db.String(100), nullable=False)
    entity_type = db.Column(db.String(50))  # loan, repayment, payment, session
    entity_id = db.Column(db.Integer)
    description = db.Column(db.Text)
    ip_address = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<ActivityLog {self.action}>'
