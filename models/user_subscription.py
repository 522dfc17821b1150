import enum
from datetime import datetime
from extensions import db # Import the SQLAlchemy instance.

# Free analyses granted while a subscription is trialing.
DEFAULT_TRIAL_LIMIT = 3


class SubscriptionStatusEnum(enum.Enum):
    """
    Enumeration for the possible statuses of a user's subscription.
    Values mirror Stripe's subscription statuses (with 'canceled' spelled 'cancelled').
    """
    ACTIVE = 'active'        # Subscription is currently active and paid.
    CANCELLED = 'cancelled'  # Subscription has been cancelled by the user or system.
    PAST_DUE = 'past_due'    # Payment is overdue.
    TRIALING = 'trialing'    # User is currently in a free trial period.
    INCOMPLETE = 'incomplete' # Initial payment failed or requires further action.
    INCOMPLETE_EXPIRED = 'incomplete_expired' # Incomplete payment expired.
    UNPAID = 'unpaid'        # Stripe gave up collecting payment.

    @staticmethod
    def from_stripe_status(stripe_status_str):
        """
        Maps a Stripe subscription status string to a SubscriptionStatusEnum member.
        Args:
            stripe_status_str (str): The status string from Stripe (e.g., "active", "trialing", "canceled").
        Returns:
            SubscriptionStatusEnum or None: The corresponding enum member, or None if no direct match.
        """
        if not stripe_status_str:
            return None
        mapping = {
            'active': SubscriptionStatusEnum.ACTIVE,
            'trialing': SubscriptionStatusEnum.TRIALING,
            'past_due': SubscriptionStatusEnum.PAST_DUE,
            'canceled': SubscriptionStatusEnum.CANCELLED, # Stripe uses "canceled"
            'cancelled': SubscriptionStatusEnum.CANCELLED,
            'unpaid': SubscriptionStatusEnum.UNPAID,
            'incomplete': SubscriptionStatusEnum.INCOMPLETE,
            'incomplete_expired': SubscriptionStatusEnum.INCOMPLETE_EXPIRED,
        }
        return mapping.get(stripe_status_str.lower(), None)


# Statuses that allow a user to run analyses.
USABLE_STATUSES = (SubscriptionStatusEnum.ACTIVE, SubscriptionStatusEnum.TRIALING)


class UserSubscription(db.Model):
    """
    A user's subscription to a plan, plus the analysis usage counted against it.

    Usage is tracked two ways: `trial_used` against `trial_limit` while trialing,
    and `used_this_month` against `monthly_limit` once paid. `monthly_limit` is
    copied from the plan (or the configured price-id map) and kept in sync when
    the subscription changes plan.
    """
    __tablename__ = 'user_subscriptions'

    id = db.Column(db.Integer, primary_key=True)

    # --- Foreign Keys and Relationships ---
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    plan_id = db.Column(db.Integer, db.ForeignKey('subscription_plans.id'), nullable=True, index=True)

    # --- Stripe identifiers ---
    stripe_subscription_id = db.Column(db.String(100), unique=True, nullable=True, index=True)
    stripe_customer_id = db.Column(db.String(120), nullable=True, index=True)
    price_id = db.Column(db.String(100), nullable=True) # Stripe Price currently billed.

    # --- Lifecycle ---
    status = db.Column(db.Enum(SubscriptionStatusEnum), nullable=False, default=SubscriptionStatusEnum.TRIALING, index=True)
    current_period_start = db.Column(db.DateTime, nullable=True)
    current_period_end = db.Column(db.DateTime, nullable=True)
    cancel_at_period_end = db.Column(db.Boolean, nullable=False, default=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    # --- Usage ---
    monthly_limit = db.Column(db.Integer, nullable=False, default=500)
    used_this_month = db.Column(db.Integer, nullable=False, default=0)
    trial_limit = db.Column(db.Integer, nullable=False, default=DEFAULT_TRIAL_LIMIT)
    trial_used = db.Column(db.Integer, nullable=False, default=0)

    # --- Timestamps ---
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    plan = db.relationship('SubscriptionPlan')

    @property
    def is_trialing(self):
        return self.status == SubscriptionStatusEnum.TRIALING

    def __repr__(self):
        return f'<UserSubscription {self.user_id} - Plan {self.plan_id} - Status {self.status.value}>'
