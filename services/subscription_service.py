from datetime import datetime
from flask import current_app

from extensions import db
from models.user import User
from models.user_subscription import UserSubscription, SubscriptionStatusEnum, USABLE_STATUSES
from models.subscription_plan import SubscriptionPlan, DEFAULT_MONTHLY_LIMIT


class UsageLimitExceeded(Exception):
    """Raised when a request needs more analyses than the subscription has left."""

    def __init__(self, message, remaining, limit_type):
        super().__init__(message)
        self.remaining = remaining
        self.limit_type = limit_type


def find_active_subscription(user_id):
    """
    Returns the user's most recent active or trialing UserSubscription, or None.
    """
    return UserSubscription.query.filter(
        UserSubscription.user_id == user_id,
        UserSubscription.status.in_(USABLE_STATUSES)
    ).order_by(UserSubscription.created_at.desc(), UserSubscription.id.desc()).first()


def get_active_subscription(user_id):
    """
    Usage snapshot of the user's usable subscription.

    Returns:
        dict or None: {id, monthly_limit, used, trial_limit, trial_used, status}, or None
                      if the user has no active or trialing subscription.
    """
    subscription = find_active_subscription(user_id)
    if subscription is None:
        return None
    return {
        'id': subscription.id,
        'monthly_limit': subscription.monthly_limit,
        'used': subscription.used_this_month,
        'trial_limit': subscription.trial_limit,
        'trial_used': subscription.trial_used,
        'status': subscription.status.value,
    }


def monthly_limit_for_price(price_id):
    """
    Analyses per month for a Stripe price id.

    The PLAN_LIMITS config map wins; then a SubscriptionPlan with that price id;
    otherwise DEFAULT_MONTHLY_LIMIT from config.
    """
    plan_limits = current_app.config.get('PLAN_LIMITS') or {}
    if price_id and price_id in plan_limits:
        return plan_limits[price_id]
    if price_id:
        plan = SubscriptionPlan.query.filter_by(stripe_price_id=price_id).first()
        if plan:
            return plan.monthly_limit
    return current_app.config.get('DEFAULT_MONTHLY_LIMIT', DEFAULT_MONTHLY_LIMIT)


def sync_monthly_limit(subscription):
    """Brings subscription.monthly_limit in line with its price id. Returns True if it changed."""
    limit = monthly_limit_for_price(subscription.price_id)
    if subscription.monthly_limit != limit:
        subscription.monthly_limit = limit
        return True
    return False


def remaining_usage(subscription):
    """
    Returns (remaining, limit, limit_type) where limit_type is 'trial' or 'monthly'.
    """
    if subscription.is_trialing:
        return subscription.trial_limit - subscription.trial_used, subscription.trial_limit, 'trial'
    return subscription.monthly_limit - subscription.used_this_month, subscription.monthly_limit, 'monthly'


def check_usage(subscription, count):
    """
    Verifies `count` more analyses fit in the subscription's trial or monthly allowance.

    Raises:
        UsageLimitExceeded: With a user-facing message when they do not.
    """
    remaining, _, limit_type = remaining_usage(subscription)
    if count > remaining:
        remaining = max(remaining, 0)
        if limit_type == 'trial':
            message = (f"Trial limit exceeded. You need {count} analyses but only have {remaining} "
                       f"left in your trial. Please upgrade to continue.")
        else:
            message = (f"Monthly limit exceeded. You need {count} analyses but only have {remaining} "
                       f"left this month.")
        raise UsageLimitExceeded(message, remaining, limit_type)
    return remaining


def record_usage(subscription_id, count):
    """
    Adds `count` analyses to the trial or monthly counter of a subscription.

    The caller commits the session.

    Returns:
        UserSubscription or None: The updated subscription, None if it does not exist.
    """
    subscription = db.session.get(UserSubscription, subscription_id)
    if subscription is None:
        current_app.logger.warning(f"record_usage: UserSubscription {subscription_id} not found.")
        return None
    if subscription.is_trialing:
        subscription.trial_used += count
    else:
        subscription.used_this_month += count
    return subscription


def on_subscription_changed(event_type, data):
    """
    Applies a Stripe subscription/invoice event to the local UserSubscription rows.

    Args:
        event_type (str): Stripe event type, e.g. 'customer.subscription.updated'.
        data (dict-like): The event's data.object (a Subscription or an Invoice).

    Returns:
        UserSubscription or None: The affected subscription, None if the event does not
                                  map onto a local subscription. The caller commits.
    """
    if event_type == 'customer.subscription.created':
        return _subscription_created(data)
    if event_type == 'customer.subscription.updated':
        return _subscription_updated(data)
    if event_type == 'customer.subscription.deleted':
        subscription = UserSubscription.query.filter_by(stripe_subscription_id=data.get('id')).first()
        if subscription:
            subscription.status = SubscriptionStatusEnum.CANCELLED
            subscription.cancelled_at = datetime.utcnow()
        return subscription
    if event_type in ('invoice.payment_succeeded', 'invoice.payment_failed'):
        stripe_subscription_id = data.get('subscription')
        if not stripe_subscription_id:
            return None # One-off charge, not tied to a subscription.
        subscription = UserSubscription.query.filter_by(stripe_subscription_id=stripe_subscription_id).first()
        if subscription is None:
            return None
        if event_type == 'invoice.payment_failed':
            subscription.status = SubscriptionStatusEnum.PAST_DUE
        else:
            subscription.status = SubscriptionStatusEnum.ACTIVE
            if data.get('billing_reason') == 'subscription_cycle':
                subscription.used_this_month = 0 # New billing month.
        return subscription
    return None


def _price_id(data):
    items = (data.get('items') or {}).get('data') or []
    if items and items[0].get('price'):
        return items[0]['price'].get('id')
    return None


def _timestamp(value):
    return datetime.utcfromtimestamp(value) if value else None


def _subscription_created(data):
    existing = UserSubscription.query.filter_by(stripe_subscription_id=data.get('id')).first()
    if existing:
        return existing # Stripe may deliver the same event more than once.

    user = User.query.filter_by(stripe_customer_id=data.get('customer')).first()
    if user is None:
        current_app.logger.error(f"Subscription {data.get('id')}: no user for Stripe customer {data.get('customer')}.")
        return None

    price_id = _price_id(data)
    plan = SubscriptionPlan.query.filter_by(stripe_price_id=price_id).first() if price_id else None
    subscription = UserSubscription(
        user_id=user.id,
        plan_id=plan.id if plan else None,
        stripe_subscription_id=data.get('id'),
        stripe_customer_id=data.get('customer'),
        price_id=price_id,
        status=SubscriptionStatusEnum.from_stripe_status(data.get('status')) or SubscriptionStatusEnum.INCOMPLETE,
        current_period_start=_timestamp(data.get('current_period_start')),
        current_period_end=_timestamp(data.get('current_period_end')),
        cancel_at_period_end=bool(data.get('cancel_at_period_end')),
        monthly_limit=monthly_limit_for_price(price_id),
        trial_limit=current_app.config.get('TRIAL_ANALYSIS_LIMIT', 3),
    )
    db.session.add(subscription)
    return subscription


def _subscription_updated(data):
    subscription = UserSubscription.query.filter_by(stripe_subscription_id=data.get('id')).first()
    if subscription is None:
        return None

    new_status = SubscriptionStatusEnum.from_stripe_status(data.get('status'))
    if new_status:
        subscription.status = new_status

    price_id = _price_id(data)
    if price_id and price_id != subscription.price_id:
        subscription.price_id = price_id
        plan = SubscriptionPlan.query.filter_by(stripe_price_id=price_id).first()
        if plan:
            subscription.plan_id = plan.id
    sync_monthly_limit(subscription)

    if data.get('current_period_start'):
        subscription.current_period_start = _timestamp(data.get('current_period_start'))
    if data.get('current_period_end'):
        subscription.current_period_end = _timestamp(data.get('current_period_end'))
    subscription.cancel_at_period_end = bool(data.get('cancel_at_period_end'))
    return subscription
