"""
Router for Stripe billing endpoints.

Handles:
- Publishable key lookup
- Checkout and billing portal sessions
- Webhook deliveries
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import (
    CheckoutRequest,
    CheckoutResponse,
    PortalResponse,
    StripeConfigResponse,
    WebhookResponse,
)
from ..models_db import User
from ..services.billing import (
    BillingService,
    BillingServiceError,
    WebhookVerificationError,
    get_billing_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["billing"])
webhook_router = APIRouter(prefix="/webhooks", tags=["billing"])


@router.get("/config", response_model=StripeConfigResponse)
async def get_stripe_config(
    billing: BillingService = Depends(get_billing_service),
) -> StripeConfigResponse:
    try:
        return StripeConfigResponse(public_key=billing.get_public_key())
    except BillingServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
) -> CheckoutResponse:
    """Start a Stripe checkout for the BASIC or PRO plan."""
    try:
        session = billing.create_checkout_session(user, body.plan_type)
    except BillingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.exception("Stripe checkout error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create checkout session: {e}",
        )
    return CheckoutResponse(**session)


@router.post("/portal", response_model=PortalResponse)
async def create_portal(
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
) -> PortalResponse:
    """Open the Stripe billing portal for the user's subscription."""
    try:
        url = billing.create_portal_session(user)
    except BillingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.exception("Stripe portal error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create portal session: {e}",
        )
    return PortalResponse(url=url)


@webhook_router.post("/stripe", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    billing: BillingService = Depends(get_billing_service),
) -> WebhookResponse:
    """
    Receive a Stripe webhook delivery.

    Returns 400 when the delivery cannot be verified and 500 when applying
    the event fails, so Stripe retries it.
    """
    payload = await request.body()

    try:
        event = billing.verify_event(payload, stripe_signature)
    except WebhookVerificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        billing.handle_event(db, event)
    except Exception as e:
        db.rollback()
        logger.exception("Error processing Stripe event %s", event.get("type"))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return WebhookResponse(received=True)
