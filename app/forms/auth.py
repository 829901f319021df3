from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, StringField, SubmitField
from wtforms.validators import (
    DataRequired,
    Email,
    EqualTo,
    Length,
    Optional,
    Regexp,
    ValidationError,
)

from app.models.user import User

USERNAME_VALIDATORS = [
    DataRequired(),
    Length(min=3, max=80, message="Username must be between 3 and 80 characters"),
    Regexp(
        r"^[a-zA-Z0-9_.-]+$",
        message="Username can only contain letters, numbers, dots, underscores, and hyphens",
    ),
]

PASSWORD_VALIDATORS = [
    DataRequired(),
    Length(min=8, message="Password must be at least 8 characters long"),
    Regexp(
        r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).*$",
        message="Password must contain at least one uppercase letter, one lowercase letter, and one number",
    ),
]


class LoginForm(FlaskForm):
    login = StringField("Email or Username", validators=[DataRequired(), Length(max=120)])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember Me")
    submit = SubmitField("Sign In")


class SignupForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    username = StringField("Username", validators=USERNAME_VALIDATORS)
    first_name = StringField("First Name", validators=[DataRequired(), Length(max=50)])
    last_name = StringField("Last Name", validators=[DataRequired(), Length(max=50)])
    password = PasswordField("Password", validators=PASSWORD_VALIDATORS)
    password_confirm = PasswordField(
        "Confirm Password",
        validators=[DataRequired(), EqualTo("password", message="Passwords must match")],
    )
    submit = SubmitField("Sign Up")

    def validate_username(self, username):
        if User.query.filter_by(username=username.data).first():
            raise ValidationError(
                "Username already exists. Please choose a different username."
            )

    def validate_email(self, email):
        if User.query.filter_by(email=email.data.lower()).first():
            raise ValidationError(
                "Email already registered. Please use a different email."
            )


class EditProfileForm(FlaskForm):
    username = StringField("Username", validators=USERNAME_VALIDATORS)
    first_name = StringField("First Name", validators=[Optional(), Length(max=50)])
    last_name = StringField("Last Name", validators=[Optional(), Length(max=50)])
    submit = SubmitField("Update Profile")

    def __init__(self, original_username, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.original_username = original_username

    def validate_username(self, username):
        if username.data != self.original_username:
            if User.query.filter_by(username=username.data).first():
                raise ValidationError(
                    "Username already taken. Please choose a different username."
                )


class RequestResetForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    submit = SubmitField("Send Reset Link")


class ResetPasswordForm(FlaskForm):
    password = PasswordField("New Password", validators=PASSWORD_VALIDATORS)
    password_confirm = PasswordField(
        "Confirm New Password",
        validators=[DataRequired(), EqualTo("password", message="Passwords must match")],
    )
    submit = SubmitField("Reset Password")
