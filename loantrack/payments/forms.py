"""Personal payment forms"""
from datetime import date
from flask_wtf import FlaskForm
from wtforms import StringField, DecimalField, DateField, TextAreaField, SubmitField
from wtforms.validators import DataRequired, Optional, NumberRange, Length, ValidationError


class PersonalPaymentForm(FlaskForm):
    """Add personal payment form"""
    name = StringField('Payment Name', validators=[DataRequired(), Length(max=200)])
    amount = DecimalField('Amount', validators=[DataRequired(), NumberRange(min=0.01)], places=2)
    start_date = DateField('Start Date', validators=[DataRequired()], default=date.today)
    due_date = DateField('Due Date', validators=[DataRequired()])
    notes = TextAreaField('Notes', validators=[Optional()])
    submit = SubmitField('Save Payment')

    def validate_due_date(self, field):
        if self.start_date.data and field.data and field.data < self.start_date.data:
            raise ValidationError('Due date cannot be before the start date')


class FinishPaymentForm(FlaskForm):
    submit = SubmitField('Mark as Paid')
