from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import IntegrityError

from forms import LoginForm, RegistrationForm
from models.user import User
from extensions import db

# Blueprint for authentication-related routes.
# Groups the JSON auth endpoints (register, login, logout, me) under the '/auth' URL prefix.
auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _form_errors(form):
    """Flattens WTForms errors to {field: first message}."""
    return {field: messages[0] for field, messages in form.errors.items() if messages}


@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Creates an account from a JSON body {email, password, confirm_password, name}
    and logs the new user in.
    """
    if current_user.is_authenticated:
        return jsonify({"error": "Already logged in."}), 400

    form = RegistrationForm()
    if not form.validate_on_submit():
        return jsonify({"error": "Invalid registration data.", "fields": _form_errors(form)}), 400

    new_user = User(email=form.email.data.lower(), name=form.name.data or None)
    new_user.set_password(form.password.data)
    try:
        db.session.add(new_user)
        db.session.commit()
        current_app.logger.info(f"New user registered: {new_user.email}")
    except IntegrityError: # Duplicate email that slipped past the form check.
        db.session.rollback()
        current_app.logger.warning(f"Registration failed for email {form.email.data}: email already exists (IntegrityError).")
        return jsonify({"error": "That email address is already registered."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error during registration for {form.email.data}: {e}", exc_info=True)
        return jsonify({"error": "Registration failed. Please try again."}), 500

    login_user(new_user)
    return jsonify(new_user.to_dict()), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Authenticates a JSON body {email, password, remember_me} and starts a session.
    """
    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({"error": "Invalid login data.", "fields": _form_errors(form)}), 400

    user = User.query.filter_by(email=form.email.data.lower()).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning(f"Failed login attempt for email: {form.email.data} due to invalid credentials.")
        return jsonify({"error": "Invalid email or password."}), 401

    login_user(user, remember=form.remember_me.data)
    current_app.logger.info(f"User {user.email} logged in successfully.")
    return jsonify(user.to_dict()), 200


@auth_bp.route('/logout', methods=['GET', 'POST'])
@login_required
def logout():
    user_email = current_user.email
    logout_user()
    current_app.logger.info(f"User {user_email} logged out.")
    return jsonify({"success": True}), 200


@auth_bp.route('/me', methods=['GET'])
def me():
    """The session's user as {id, email, role}, or 401 when nobody is logged in."""
    if not current_user.is_authenticated:
        return jsonify({"error": "Unauthorized"}), 401
    return jsonify(current_user.to_dict()), 200
