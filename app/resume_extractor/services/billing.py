"""
Stripe billing: webhook reconciliation and checkout/portal sessions.

Webhook events move users between plans and grant the plan's credits.
Every applied event is stored as a BillingEvent so a replayed delivery is
skipped instead of granting credits twice.
"""

import json
import logging
import uuid
from collections.abc import Callable
from typing import Any

import stripe
from fastapi import Request
from sqlalchemy.orm import Session

from ..models import PlanType
from ..models_db import BillingEvent, User
from .credits import PLAN_CREDITS, CreditLedger

logger = logging.getLogger(__name__)

CHECKOUT_PLANS = (PlanType.BASIC, PlanType.PRO)


class BillingServiceError(Exception):
    """Raised when a billing operation cannot be completed."""

    def __init__(self, message: str, status_code: int = 500):
        self.status_code = status_code
        super().__init__(message)


class WebhookVerificationError(BillingServiceError):
    """Raised when a webhook delivery cannot be authenticated."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


def _to_dict(obj: Any) -> dict[str, Any]:
    """Plain dict view of a StripeObject response."""
    return obj.to_dict()


def _price_id(subscription: dict[str, Any]) -> str | None:
    items = subscription.get("items") or {}
    data = items.get("data") or []
    if not data:
        return None
    return (data[0].get("price") or {}).get("id")


def _invoice_subscription_id(invoice: dict[str, Any]) -> str | None:
    subscription_id = invoice.get("subscription")
    if subscription_id:
        return subscription_id
    # Newer API versions nest the subscription under the invoice parent
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


class BillingService:
    """
    Stripe-backed plan and credit reconciliation.

    Args:
        secret_key: Stripe secret API key.
        webhook_secret: Signing secret of the webhook endpoint.
        public_key: Publishable key handed to the frontend.
        price_basic: Price id of the BASIC plan.
        price_pro: Price id of the PRO plan.
        app_url: Frontend base URL for checkout/portal redirects.
        ledger: Credit ledger used to grant plan credits.
        client: Pre-built Stripe client (created lazily otherwise).
    """

    def __init__(
        self,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
        public_key: str | None = None,
        price_basic: str | None = None,
        price_pro: str | None = None,
        app_url: str = "http://localhost:3000",
        ledger: CreditLedger | None = None,
        client: Any = None,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.public_key = public_key
        self.price_basic = price_basic
        self.price_pro = price_pro
        self.app_url = app_url.rstrip("/")
        self.ledger = ledger or CreditLedger()
        self._client = client

        self._handlers: dict[str, Callable[[Session, dict[str, Any]], User | None]] = {
            "invoice.paid": self._handle_invoice_paid,
            "customer.subscription.created": self._handle_subscription_created,
            "customer.subscription.updated": self._handle_subscription_updated,
            "customer.subscription.deleted": self._handle_subscription_deleted,
            "checkout.session.completed": self._handle_checkout_completed,
        }

    @classmethod
    def from_settings(cls, settings, ledger: CreditLedger) -> "BillingService":
        return cls(
            secret_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            public_key=settings.stripe_public_key,
            price_basic=settings.stripe_price_basic,
            price_pro=settings.stripe_price_pro,
            app_url=settings.app_url,
            ledger=ledger,
        )

    @property
    def client(self):
        """Lazy-load the Stripe client."""
        if self._client is None:
            if not self.secret_key:
                raise BillingServiceError(
                    "STRIPE_SECRET_KEY is not set in environment variables"
                )
            self._client = stripe.StripeClient(self.secret_key)
        return self._client

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------

    def plan_type_for_price(self, price_id: str | None) -> PlanType:
        if price_id and price_id == self.price_pro:
            return PlanType.PRO
        if price_id and price_id == self.price_basic:
            return PlanType.BASIC
        return PlanType.FREE

    def price_for_plan(self, plan_type: PlanType) -> str:
        price_id = self.price_basic if plan_type == PlanType.BASIC else self.price_pro
        if not price_id:
            raise BillingServiceError(
                f"Stripe price ID for {plan_type.value} not configured"
            )
        return price_id

    def get_public_key(self) -> str:
        if not self.public_key:
            raise BillingServiceError("Stripe publishable key is not configured")
        return self.public_key

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    def verify_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """
        Authenticate a webhook delivery and decode its event.

        Raises:
            WebhookVerificationError: Missing header/secret or bad signature.
        """
        if not signature or not self.webhook_secret:
            logger.error("Missing stripe signature or webhook secret")
            raise WebhookVerificationError("Missing stripe signature")

        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            logger.error("Webhook signature verification failed: %s", e)
            raise WebhookVerificationError(str(e)) from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise WebhookVerificationError("Invalid payload") from e

    def handle_event(self, db: Session, event: dict[str, Any]) -> bool:
        """
        Apply one webhook event.

        Returns:
            False when the event id was already processed, True otherwise.
        """
        event_id = event.get("id")
        event_type = event.get("type", "")
        logger.info("Received Stripe event %s (%s)", event_type, event_id)

        if event_id:
            seen = (
                db.query(BillingEvent.id)
                .filter(BillingEvent.stripe_event_id == event_id)
                .first()
            )
            if seen is not None:
                logger.info("Skipping already processed event %s", event_id)
                return False

        data = (event.get("data") or {}).get("object") or {}
        handler = self._handlers.get(event_type)
        user = None
        if handler is None:
            logger.info("Unhandled event type: %s", event_type)
        else:
            user = handler(db, data)

        if event_id:
            db.add(
                BillingEvent(
                    stripe_event_id=event_id,
                    event_type=event_type,
                    user_id=user.id if user is not None else None,
                    payload=data,
                )
            )
        db.commit()
        return True

    def _find_by_subscription(self, db: Session, subscription_id: str) -> User | None:
        user = db.query(User).filter(User.subscription_id == subscription_id).first()
        if user is None:
            logger.info("User not found for subscription %s", subscription_id)
        return user

    def _handle_invoice_paid(self, db: Session, invoice: dict[str, Any]) -> User | None:
        subscription_id = _invoice_subscription_id(invoice)
        if not subscription_id:
            logger.info("Invoice %s has no subscription", invoice.get("id"))
            return None

        subscription = _to_dict(self.client.subscriptions.retrieve(subscription_id))
        user = self._find_by_subscription(db, subscription_id)
        if user is None:
            return None

        plan_type = self.plan_type_for_price(_price_id(subscription))
        credits = PLAN_CREDITS.get(plan_type, 0)
        if credits > 0:
            user.plan_type = plan_type
            self.ledger.grant(db, user, credits)
            logger.info("Renewed %s plan for user %s", plan_type.value, user.id)
        return user

    def _handle_subscription_updated(
        self, db: Session, subscription: dict[str, Any]
    ) -> User | None:
        user = self._find_by_subscription(db, subscription["id"])
        if user is None:
            return None
        user.plan_type = self.plan_type_for_price(_price_id(subscription))
        db.flush()
        logger.info("Updated user %s to %s plan", user.id, user.plan_type.value)
        return user

    def _handle_subscription_deleted(
        self, db: Session, subscription: dict[str, Any]
    ) -> User | None:
        user = self._find_by_subscription(db, subscription["id"])
        if user is None:
            return None
        user.plan_type = PlanType.FREE
        user.subscription_id = None
        db.flush()
        logger.info("Reset user %s to FREE plan", user.id)
        return user

    def _handle_checkout_completed(
        self, db: Session, session: dict[str, Any]
    ) -> User | None:
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        if not user_id:
            logger.info("No userId in checkout session metadata")
            return None

        subscription_id = session.get("subscription")
        if not subscription_id:
            logger.info("No subscription ID in checkout session %s", session.get("id"))
            return None

        try:
            user = db.get(User, uuid.UUID(user_id))
        except ValueError:
            user = None
        if user is None:
            raise BillingServiceError(f"User {user_id} from checkout metadata not found")

        try:
            plan_type = PlanType(metadata.get("planType") or PlanType.BASIC.value)
        except ValueError:
            plan_type = PlanType.BASIC

        user.subscription_id = subscription_id
        user.plan_type = plan_type
        customer_id = session.get("customer")
        if customer_id:
            user.stripe_customer_id = customer_id
        self.ledger.grant(db, user, PLAN_CREDITS[plan_type])
        logger.info("Checkout completed for user %s, plan %s", user.id, plan_type.value)
        return user

    def _handle_subscription_created(
        self, db: Session, subscription: dict[str, Any]
    ) -> User | None:
        # Fallback for when checkout.session.completed is not delivered
        customer = _to_dict(self.client.customers.retrieve(subscription["customer"]))
        if customer.get("deleted"):
            logger.info("Customer %s not found or deleted", subscription["customer"])
            return None

        email = customer.get("email")
        if not email:
            logger.info("Customer %s has no email", subscription["customer"])
            return None

        user = db.query(User).filter(User.email == email).first()
        if user is None or user.subscription_id:
            return user

        plan_type = self.plan_type_for_price(_price_id(subscription))
        user.subscription_id = subscription["id"]
        user.plan_type = plan_type
        user.stripe_customer_id = subscription["customer"]
        credits = PLAN_CREDITS.get(plan_type, 0)
        if credits > 0:
            self.ledger.grant(db, user, credits)
        else:
            db.flush()
        logger.info("Subscription created for user %s, plan %s", user.id, plan_type.value)
        return user

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def _customer_for(self, user: User) -> str:
        if user.subscription_id:
            try:
                existing = _to_dict(self.client.subscriptions.retrieve(user.subscription_id))
                self.client.subscriptions.cancel(user.subscription_id)
                logger.info("Cancelled subscription %s before plan change", user.subscription_id)
                return existing["customer"]
            except stripe.StripeError as e:
                logger.warning("Error canceling existing subscription: %s", e)

        customer = _to_dict(
            self.client.customers.create(
                params={"email": user.email, "metadata": {"userId": str(user.id)}}
            )
        )
        return customer["id"]

    def create_checkout_session(self, user: User, plan_type: PlanType) -> dict[str, Any]:
        """
        Start a subscription checkout for BASIC or PRO.

        Returns:
            Dict with ``session_id`` and ``url``.
        """
        if plan_type not in CHECKOUT_PLANS:
            raise BillingServiceError(
                "Invalid plan type. Must be BASIC or PRO", status_code=400
            )

        price_id = self.price_for_plan(plan_type)
        customer_id = self._customer_for(user)
        session = _to_dict(
            self.client.checkout.sessions.create(
                params={
                    "customer": customer_id,
                    "payment_method_types": ["card"],
                    "line_items": [{"price": price_id, "quantity": 1}],
                    "mode": "subscription",
                    "success_url": f"{self.app_url}/settings?success=true&session_id={{CHECKOUT_SESSION_ID}}",
                    "cancel_url": f"{self.app_url}/settings?canceled=true",
                    "metadata": {"userId": str(user.id), "planType": plan_type.value},
                }
            )
        )
        logger.info("Created checkout session %s for user %s", session["id"], user.id)
        return {"session_id": session["id"], "url": session.get("url")}

    def create_portal_session(self, user: User) -> str:
        """Return the billing portal URL for the user's subscription customer."""
        if not user.subscription_id:
            raise BillingServiceError("No active subscription found", status_code=400)

        subscription = _to_dict(self.client.subscriptions.retrieve(user.subscription_id))
        portal = _to_dict(
            self.client.billing_portal.sessions.create(
                params={
                    "customer": subscription["customer"],
                    "return_url": f"{self.app_url}/settings",
                }
            )
        )
        return portal["url"]


def get_billing_service(request: Request) -> BillingService:
    """Return the BillingService created during application startup."""
    return request.app.state.billing_service
