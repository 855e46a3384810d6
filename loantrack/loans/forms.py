"""Loan forms"""
from datetime import date
from flask_wtf import FlaskForm
from wtforms import StringField, SelectField, DecimalField, IntegerField, DateField, TextAreaField, SubmitField
from wtforms.validators import DataRequired, InputRequired, Optional, NumberRange, Length
from loantrack.ledger import PAYMENT_METHODS

PAYMENT_METHOD_CHOICES = [(m, m) for m in PAYMENT_METHODS]


class LoanForm(FlaskForm):
    """New loan form"""
    first_name = StringField('First Name', validators=[DataRequired(), Length(max=100)])
    last_name = StringField('Last Name', validators=[DataRequired(), Length(max=100)])
    principal = DecimalField('Loan Amount', validators=[DataRequired(), NumberRange(min=0.01)], places=2)
    interest_rate = DecimalField('Interest Rate (% per annum)', validators=[
        Optional(), NumberRange(min=0, max=999)
    ], places=2, default=0)
    term_months = IntegerField('Term (Months)', validators=[DataRequired(), NumberRange(min=1, max=600)])
    start_date = DateField('Start Date', validators=[DataRequired()], default=date.today)
    payment_method = SelectField('Payment Method', choices=PAYMENT_METHOD_CHOICES, default='Cash')
    notes = TextAreaField('Notes', validators=[Optional()])
    submit = SubmitField('Save Loan')


class RepaymentForm(FlaskForm):
    """Repayment form; interest and balance are computed, not entered"""
    repayment_date = DateField('Repayment Date', validators=[DataRequired()], default=date.today)
    amount_paid = DecimalField('Amount Paid', validators=[InputRequired()], places=2)
    payment_method = SelectField('Payment Method', choices=PAYMENT_METHOD_CHOICES, default='Cash')
    notes = TextAreaField('Notes', validators=[Optional()])
    submit = SubmitField('Record Payment')


class FinishLoanForm(FlaskForm):
    """Confirm closing a loan with a small balance"""
    submit = SubmitField('Mark as Finished')


class LoanNotesForm(FlaskForm):
    notes = TextAreaField('Notes', validators=[Optional()])
    submit = SubmitField('Save Notes')
