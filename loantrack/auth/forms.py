"""Authentication forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, HiddenField, SubmitField
from wtforms.validators import DataRequired, Email, Length, Regexp


class EmailForm(FlaskForm):
    """Ask for a sign-in code"""
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])
    submit = SubmitField('Send Code')


class CodeForm(FlaskForm):
    """Enter the emailed code"""
    email = HiddenField('Email', validators=[DataRequired()])
    code = StringField('Verification Code', validators=[
        DataRequired(),
        Regexp(r'^\d{6}$', message='Enter the 6-digit code from your email')
    ])
    submit = SubmitField('Verify')
