from functools import wraps
from flask import g, jsonify
from flask_login import current_user
from services.subscription_service import find_active_subscription

def subscription_required(f):
    """
    Decorator to ensure a user has an active (or trialing) subscription.

    The subscription is stored on `flask.g.subscription` for the view.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            # Normally handled by @login_required before this decorator runs.
            return jsonify({"error": "Unauthorized"}), 401

        active_subscription = find_active_subscription(current_user.id)
        if not active_subscription:
            return jsonify({"error": "No active subscription found. Please subscribe to continue."}), 403

        g.subscription = active_subscription
        return f(*args, **kwargs)
    return decorated_function
