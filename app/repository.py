import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import GamingSession, Payment, Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingPaymentResult:
    """Outcome of the bookkeeping write that follows a successful gateway call."""

    stored: bool
    reason: Optional[str] = None


_LEADING_NUMBER = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_amount(amount) -> float:
    """Leading decimal number of ``amount``, so "2500 XOF" gives 2500.0."""
    match = _LEADING_NUMBER.match(str(amount))
    if not match:
        raise ValueError(f"amount {amount!r} is not a number")
    value = float(match.group(1))
    if not math.isfinite(value):
        raise ValueError(f"amount {amount!r} is out of range")
    return value


def _now():
    return datetime.now(timezone.utc)


def get_user_id(db: Session, session_id=None, subscription_id=None) -> Optional[str]:
    """Owner of a gaming session or, failing that, of a subscription.

    Lookup errors and missing rows both come back as None.
    """
    try:
        if session_id:
            return db.query(GamingSession.user_id).filter_by(id=session_id).one().user_id
        if subscription_id:
            return db.query(Subscription.user_id).filter_by(id=subscription_id).one().user_id
        return None
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error getting user ID")
        return None


def record_pending_payment(
    db: Session,
    *,
    reference: str,
    amount,
    session_id=None,
    subscription_id=None,
) -> PendingPaymentResult:
    user_id = get_user_id(db, session_id, subscription_id)
    if not user_id:
        return PendingPaymentResult(stored=False, reason="owner not found")

    try:
        payment = Payment(
            user_id=user_id,
            amount=parse_amount(amount),
            currency="XOF",
            payment_method="wave",
            status="pending",
            reference=reference,
            session_id=session_id or None,
            subscription_id=subscription_id or None,
            created_at=_now(),
        )
        db.add(payment)
        db.commit()
    except (SQLAlchemyError, TypeError, ValueError, OverflowError) as e:
        db.rollback()
        logger.exception("Error storing payment information")
        return PendingPaymentResult(stored=False, reason=str(e))

    return PendingPaymentResult(stored=True)


def _update_status(db: Session, model, column, key, status: str) -> None:
    try:
        db.query(model).filter(column == key).update(
            {"status": status, "updated_at": _now()},
            synchronize_session=False,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating %s status for %s", model.__tablename__, key)


def update_payment_status(db: Session, reference: str, status: str) -> None:
    _update_status(db, Payment, Payment.reference, reference, status)


def update_session_status(db: Session, session_id: str, status: str) -> None:
    _update_status(db, GamingSession, GamingSession.id, session_id, status)


def update_subscription_status(db: Session, subscription_id: str, status: str) -> None:
    _update_status(db, Subscription, Subscription.id, subscription_id, status)
