"""
Billing endpoints.

POST /billing/checkout    - start a Stripe Checkout Session
GET  /billing/success     - pick up the bearer token after checkout
POST /webhook/stripe      - Stripe webhook (no auth, verified by signature)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from copydesk.config import settings
from copydesk.db import get_db
from copydesk.schemas import CheckoutRequest, CheckoutResponse, TokenResponse, WebhookAck
from copydesk.services.account_service import get_account_by_email
from copydesk.services.stripe_service import (
    create_checkout_session, retrieve_checkout_email, verify_webhook, process_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


@router.post("/billing/checkout", response_model=CheckoutResponse)
async def start_checkout(body: CheckoutRequest):
    """Create a subscription checkout session and return its URL."""
    try:
        session = create_checkout_session(
            email=body.email,
            name=body.name,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
        )
    except ValueError as e:
        logger.error(f"Checkout unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return CheckoutResponse(**session)


@router.get("/billing/success", response_model=TokenResponse)
async def checkout_success(session_id: str, db: AsyncSession = Depends(get_db)):
    """
    Return the account token for a completed checkout.

    404 until the webhook has provisioned the account.
    """
    try:
        email = retrieve_checkout_email(session_id)
    except ValueError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not email:
        raise HTTPException(status_code=404, detail="Checkout session not found")

    account = await get_account_by_email(db, email)
    if account is None or not account.subscribed:
        raise HTTPException(status_code=404, detail="Account not ready yet")
    return TokenResponse(email=account.email, token=account.token)


@router.post("/webhook/stripe", response_model=WebhookAck, status_code=200)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Verify the signature, then apply the event (idempotent by event id)."""
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    event = verify_webhook(payload, sig_header)
    if event is None:
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    outcome = await process_event(db, event)
    return WebhookAck(received=True, outcome=outcome)
