import json

from flask import Blueprint, request, current_app
import stripe # Import the Stripe Python library

from extensions import db # For database operations
from services.subscription_service import on_subscription_changed

# Blueprint for the Stripe webhook. Checkout and the customer portal live on Stripe's
# side; this app only mirrors subscription state from webhook events.
billing_bp = Blueprint('billing', __name__)

HANDLED_EVENT_TYPES = (
    'customer.subscription.created',
    'customer.subscription.updated',
    'customer.subscription.deleted',
    'invoice.payment_succeeded',
    'invoice.payment_failed',
)


# This endpoint must be publicly accessible (no @login_required).
@billing_bp.route('/stripe-webhook', methods=['POST'])
def stripe_webhook():
    """
    Handles incoming webhooks from Stripe for subscription and invoice events.
    Security is handled by verifying the Stripe signature.
    """
    payload = request.data
    sig_header = request.headers.get('Stripe-Signature')
    event_id_for_logging = 'unknown_event_id' # Default for logging if event ID cannot be extracted.

    # --- Webhook Signature Verification ---
    try:
        stripe.Webhook.construct_event(
            payload, sig_header, current_app.config['STRIPE_WEBHOOK_SECRET']
        )
        # Work on the verified payload as plain dicts.
        event = json.loads(payload)
        event_id_for_logging = event.get('id', event_id_for_logging)
        event_type = event.get('type')
        current_app.logger.info(f"Stripe Webhook Event ID {event_id_for_logging}: Received event type '{event_type}'.")
    except ValueError as e:
        # Invalid payload (e.g., not valid JSON).
        current_app.logger.error(f"Webhook ValueError (Event ID {event_id_for_logging}): Invalid payload - {e}")
        return 'Invalid payload', 400
    except stripe.SignatureVerificationError as e:
        current_app.logger.error(f"Webhook SignatureVerificationError (Event ID {event_id_for_logging}): {e}")
        return 'Invalid signature', 400
    except Exception as e:
        current_app.logger.error(f"Webhook event construction error (Event ID {event_id_for_logging}): {e}", exc_info=True)
        return 'Error constructing event', 500

    if event_type not in HANDLED_EVENT_TYPES:
        # Stripe retries non-2xx responses, so unknown events are acknowledged.
        current_app.logger.warning(f"Event ID {event_id_for_logging}: Received unhandled event type '{event_type}'.")
        return 'Success: Event received but not explicitly handled by this endpoint.', 200

    log_prefix = f"Event ID {event_id_for_logging} ({event_type})"
    data_object = (event.get('data') or {}).get('object') or {}
    try:
        subscription = on_subscription_changed(event_type, data_object)
        if subscription is None:
            current_app.logger.warning(f"{log_prefix}: No local subscription matched; nothing to update.")
            return 'Success', 200
        db.session.commit()
        current_app.logger.info(f"{log_prefix}: UserSubscription {subscription.id} for user {subscription.user_id} is now {subscription.status.value}.")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"{log_prefix}: Error committing UserSubscription updates: {e}", exc_info=True)
        return 'Error updating subscription', 500

    return 'Success', 200
