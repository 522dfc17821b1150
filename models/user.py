from datetime import datetime
from extensions import db
import bcrypt
from flask_login import UserMixin # For Flask-Login integration (e.g., current_user).


class User(db.Model, UserMixin):
    """
    An account that can log in and analyze URLs.

    Stores the login email and bcrypt password hash, the account role and the
    Stripe customer the account's subscriptions are billed to.
    UserMixin provides the is_authenticated/get_id hooks Flask-Login expects.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True) # Stored lower-cased.
    password_hash = db.Column(db.String(128), nullable=True)
    name = db.Column(db.String(100), nullable=True)
    role = db.Column(db.String(20), nullable=False, default='user', server_default='user') # 'user' or 'admin'.

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Links this user to a customer object in Stripe.
    stripe_customer_id = db.Column(db.String(120), unique=True, nullable=True, index=True)

    # lazy='dynamic' returns a query so callers can filter/order subscriptions.
    subscriptions = db.relationship('UserSubscription', backref='user', lazy='dynamic')

    def set_password(self, password):
        """
        Hashes the provided password and stores it in `password_hash`.

        Args:
            password (str): The plain-text password to hash.
        """
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        """
        Verifies a plain-text password against the stored hash.

        Returns:
            bool: True on match; False on mismatch or if no password is set.
        """
        if self.password_hash:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        return False

    def to_dict(self):
        """Public identity of the user: {id, email, role}."""
        return {'id': self.id, 'email': self.email, 'role': self.role}

    def __repr__(self):
        return f'<User {self.email}>'
