"""
Credit bookkeeping.

Every processed file costs a fixed number of credits. Balances are changed
with a single UPDATE so concurrent requests for the same user are
serialized by the database.
"""

import logging

from fastapi import Request
from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models import PlanType
from ..models_db import User

logger = logging.getLogger(__name__)

DEFAULT_CREDITS_PER_FILE = 100

# Credits granted when a plan starts or renews
PLAN_CREDITS: dict[PlanType, int] = {
    PlanType.FREE: 1000,
    PlanType.BASIC: 10000,
    PlanType.PRO: 20000,
}


class InsufficientCreditsError(Exception):
    """Raised when a user cannot afford to process another file."""

    def __init__(self, credits_remaining: int, credits_required: int, plan_type: PlanType):
        self.credits_remaining = credits_remaining
        self.credits_required = credits_required
        self.plan_type = plan_type
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.plan_type == PlanType.FREE:
            hint = (
                "Please subscribe to a plan to get more credits, "
                "or wait for your subscription to renew."
            )
        else:
            hint = "Please top up your credits or wait for your subscription to renew."
        return (
            f"You need {self.credits_required} credits to process a file. "
            f"You have {self.credits_remaining} credits remaining. {hint}"
        )

    def to_detail(self) -> dict:
        return {
            "error": "Insufficient credits",
            "message": self.message,
            "credits_remaining": self.credits_remaining,
            "credits_required": self.credits_required,
        }


class CreditLedger:
    """Checks and moves credit balances."""

    def __init__(self, credits_per_file: int = DEFAULT_CREDITS_PER_FILE):
        self.credits_per_file = credits_per_file

    @classmethod
    def from_settings(cls, settings) -> "CreditLedger":
        return cls(credits_per_file=settings.credits_per_file)

    def ensure_sufficient(self, user: User) -> None:
        """
        Raises:
            InsufficientCreditsError: If the balance is below the per-file cost.
        """
        if user.credits < self.credits_per_file:
            logger.info(
                "User %s has %d credits, %d required",
                user.id,
                user.credits,
                self.credits_per_file,
            )
            raise InsufficientCreditsError(
                credits_remaining=user.credits,
                credits_required=self.credits_per_file,
                plan_type=user.plan_type,
            )

    def _adjust(self, db: Session, user: User, delta: int) -> int:
        db.execute(
            update(User)
            .where(User.id == user.id)
            .values(credits=User.credits + delta)
        )
        db.flush()
        db.refresh(user)
        return user.credits

    def consume(self, db: Session, user: User, amount: int | None = None) -> int:
        """Deduct credits (default: the per-file cost) and return the new balance."""
        amount = self.credits_per_file if amount is None else amount
        balance = self._adjust(db, user, -amount)
        logger.info("Consumed %d credits from user %s, %d left", amount, user.id, balance)
        return balance

    def grant(self, db: Session, user: User, amount: int) -> int:
        """Add credits and return the new balance."""
        balance = self._adjust(db, user, amount)
        logger.info("Granted %d credits to user %s, now %d", amount, user.id, balance)
        return balance


def get_credit_ledger(request: Request) -> CreditLedger:
    """Return the CreditLedger created during application startup."""
    return request.app.state.credit_ledger
