from extensions import db # Import the SQLAlchemy instance from extensions.

# Analyses per billing month when a plan has no explicit limit.
DEFAULT_MONTHLY_LIMIT = 500


class SubscriptionPlan(db.Model):
    """
    A paid tier (Bronze, Silver, Gold; monthly or annual).

    Each plan maps to one Stripe Price and caps how many URLs a subscriber may
    analyze per billing month.
    """
    __tablename__ = 'subscription_plans'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False) # e.g. "Silver Plan (Monthly)".
    price = db.Column(db.Numeric(10, 2), nullable=False) # Numeric for exact currency amounts.
    # Stripe Price object this plan is sold as. Used to resolve webhooks back to a plan.
    stripe_price_id = db.Column(db.String(100), unique=True, nullable=True, index=True)
    # URL analyses allowed per billing month.
    monthly_limit = db.Column(db.Integer, nullable=False, default=DEFAULT_MONTHLY_LIMIT)

    def __repr__(self):
        return f'<SubscriptionPlan {self.name} - {self.price} ({self.monthly_limit}/month)>'
