"""
Stripe integration: checkout sessions, webhook verification and
account provisioning from subscription events.
"""

import json
import logging
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from copydesk.config import settings
from copydesk.db.models import Account, ProcessedEvent
from copydesk.services.account_service import (
    generate_token, get_account_by_email, get_account_by_customer,
    get_state, new_user_state, normalize_email,
)

logger = logging.getLogger(__name__)

ACTIVE_SUBSCRIPTION_STATUSES = {"active", "trialing"}

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAID = "invoice.paid"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


def _get_stripe_client() -> stripe.StripeClient:
    if not settings.stripe_secret_key:
        raise ValueError("STRIPE_SECRET_KEY is not configured")
    return stripe.StripeClient(settings.stripe_secret_key)


def create_checkout_session(
    email: str,
    name: Optional[str],
    success_url: str,
    cancel_url: str,
) -> dict:
    """
    Create a Stripe Checkout Session for the subscription.

    Returns the session dict with at least:
        { "id": "cs_...", "url": "https://checkout.stripe.com/..." }
    """
    client = _get_stripe_client()

    if not settings.stripe_price_id:
        raise ValueError("STRIPE_PRICE_ID is not configured")

    metadata = {"email": normalize_email(email)}
    if name:
        metadata["name"] = name

    session = client.checkout.sessions.create(
        params={
            "mode": "subscription",
            "line_items": [{"price": settings.stripe_price_id, "quantity": 1}],
            "customer_email": normalize_email(email),
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
        }
    )

    return {"id": session.id, "url": session.url}


def retrieve_checkout_email(session_id: str) -> Optional[str]:
    """Email attached to a completed checkout session, if any."""
    client = _get_stripe_client()
    try:
        session = client.checkout.sessions.retrieve(session_id)
    except stripe.error.InvalidRequestError:
        logger.info("Unknown checkout session %s", session_id)
        return None
    details = getattr(session, "customer_details", None)
    email = getattr(details, "email", None) if details else None
    return normalize_email(email or getattr(session, "customer_email", None)) or None


def verify_webhook(payload: bytes, sig_header: str) -> Optional[dict]:
    """
    Verify a Stripe webhook signature and return the parsed event dict,
    or None if the signature is invalid.
    """
    webhook_secret = settings.stripe_webhook_secret
    if not webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET not set, skipping signature verification")
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Stripe webhook payload is not valid JSON")
            return None

    try:
        stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
    except stripe.error.SignatureVerificationError:
        logger.warning("Stripe webhook signature verification failed")
        return None
    except ValueError as exc:
        logger.warning("Error parsing Stripe webhook: %s", exc)
        return None
    return json.loads(payload)


# ── Provisioning ─────────────────────────────────────────────────────

def _event_object(event: Dict[str, Any]) -> Dict[str, Any]:
    return (event.get("data") or {}).get("object") or {}


async def _ensure_state(db: AsyncSession, account: Account) -> None:
    if await get_state(db, account.id) is None:
        db.add(new_user_state(account.id))


async def _apply_checkout_completed(db: AsyncSession, obj: Dict[str, Any]) -> str:
    details = obj.get("customer_details") or {}
    metadata = obj.get("metadata") or {}
    email = normalize_email(details.get("email") or obj.get("customer_email") or metadata.get("email"))
    if not email:
        logger.warning("Checkout completed without an email: %s", obj.get("id"))
        return "ignored"
    name = details.get("name") or metadata.get("name")

    account = await get_account_by_email(db, email)
    if account is None:
        account = Account(email=email, name=name, token=generate_token())
        db.add(account)
        await db.flush()
        outcome = "created"
    else:
        outcome = "updated"
        if name and not account.name:
            account.name = name
        if not account.token:
            account.token = generate_token()

    account.subscribed = True
    account.billing_status = "active"
    if obj.get("customer"):
        account.stripe_customer_id = obj["customer"]
    if obj.get("subscription"):
        account.stripe_subscription_id = obj["subscription"]

    await _ensure_state(db, account)
    return outcome


async def _account_for(db: AsyncSession, obj: Dict[str, Any]) -> Optional[Account]:
    customer = obj.get("customer")
    account = await get_account_by_customer(db, customer) if customer else None
    if account is None:
        email = (obj.get("metadata") or {}).get("email") or obj.get("customer_email")
        if email:
            account = await get_account_by_email(db, email)
    return account


async def _apply_subscription_change(db: AsyncSession, event_type: str, obj: Dict[str, Any]) -> str:
    account = await _account_for(db, obj)
    if account is None:
        logger.warning("%s for unknown customer %s", event_type, obj.get("customer"))
        return "unmatched"

    if event_type == SUBSCRIPTION_UPDATED:
        status = obj.get("status") or ""
        account.subscribed = status in ACTIVE_SUBSCRIPTION_STATUSES
        account.billing_status = status or account.billing_status
        if obj.get("id"):
            account.stripe_subscription_id = obj["id"]
    elif event_type == SUBSCRIPTION_DELETED:
        account.subscribed = False
        account.billing_status = "canceled"
    elif event_type == INVOICE_PAID:
        account.subscribed = True
        account.billing_status = "active"
    elif event_type == INVOICE_PAYMENT_FAILED:
        # Stripe retries the charge; the subscription event decides access
        account.billing_status = "past_due"

    if not account.token:
        account.token = generate_token()
    await _ensure_state(db, account)
    return "updated"


async def process_event(db: AsyncSession, event: Dict[str, Any]) -> str:
    """
    Apply one Stripe event. Replaying an event id is a no-op.

    Returns "duplicate", "created", "updated", "unmatched" or "ignored".
    """
    event_id = event.get("id")
    event_type = event.get("type") or ""
    if not event_id:
        logger.warning("Stripe event without id ignored (type=%s)", event_type)
        return "ignored"

    if await db.get(ProcessedEvent, event_id) is not None:
        logger.info("Stripe event %s already processed", event_id)
        return "duplicate"

    obj = _event_object(event)
    if event_type == CHECKOUT_COMPLETED:
        outcome = await _apply_checkout_completed(db, obj)
    elif event_type in (SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED, INVOICE_PAID, INVOICE_PAYMENT_FAILED):
        outcome = await _apply_subscription_change(db, event_type, obj)
    else:
        outcome = "ignored"

    db.add(ProcessedEvent(event_id=event_id, event_type=event_type))
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent delivery of the same event won the insert
        await db.rollback()
        logger.info("Stripe event %s applied concurrently", event_id)
        return "duplicate"

    logger.info("Stripe event %s (%s): %s", event_id, event_type, outcome)
    return outcome
