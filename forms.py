from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import DataRequired, Email, EqualTo, Length, Optional, ValidationError
from models.user import User

# The auth endpoints accept JSON. Flask-WTF builds formdata from a JSON request body,
# so these declarations validate API payloads the same way they would an HTML form.

MIN_PASSWORD_LENGTH = 6
MAX_NAME_LENGTH = 100 # users.name column width


class RegistrationForm(FlaskForm):
    """Payload for POST /auth/register: email, password twice, optional display name."""
    email = StringField('Email', validators=[
        DataRequired(message="Email is required."),
        Email(message="Invalid email address."),
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message="Password is required."),
        Length(min=MIN_PASSWORD_LENGTH, message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."),
    ])
    confirm_password = PasswordField('Confirm Password', validators=[
        DataRequired(message="Please confirm your password."),
        EqualTo('password', message="Passwords must match."),
    ])
    name = StringField('Name', validators=[
        Optional(),
        Length(max=MAX_NAME_LENGTH, message=f"Name must be at most {MAX_NAME_LENGTH} characters long."),
    ])

    def validate_email(self, email):
        """Rejects addresses that already belong to an account (compared lower-cased)."""
        if email.data and User.query.filter_by(email=email.data.lower()).first():
            raise ValidationError('That email address is already registered. Please choose a different one or log in.')


class LoginForm(FlaskForm):
    """Payload for POST /auth/login."""
    email = StringField('Email', validators=[
        DataRequired(message="Email is required."),
        Email(message="Invalid email address."),
    ])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required.")])
    # Persistent session cookie when true.
    remember_me = BooleanField('Remember Me')
