import logging
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from app.auth import can_access_user, verify_token
from app.config import Settings, get_settings
from app.database import SessionLocal
from app.models import GamingSession, Subscription
from app.paytech_service import (
    build_payment_request,
    generate_reference,
    normalize_phone,
    request_payment,
)
from app.repository import record_pending_payment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class WavePaymentRequest(BaseModel):
    name: Optional[Any] = None
    phone: Optional[Any] = None
    amount: Optional[Any] = None
    item_name: Optional[Any] = None
    description: Optional[Any] = None
    session_id: Optional[Any] = None
    subscription_id: Optional[Any] = None


def _as_id(value) -> Optional[str]:
    return str(value) if value else None


def _failure(status_code: int, message: str, error=None) -> JSONResponse:
    content = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


@router.post("/pay-with-wave")
def pay_with_wave(
    body: WavePaymentRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
):
    if not body.name or not body.phone or not body.amount:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: name, phone, and amount are required",
        )

    session_id = _as_id(body.session_id)
    subscription_id = _as_id(body.subscription_id)
    reference = generate_reference()
    payload = build_payment_request(
        settings,
        name=body.name,
        phone=normalize_phone(body.phone),
        amount=body.amount,
        reference=reference,
        ipn_url=str(request.url_for("payment_callback")),
        item_name=body.item_name,
        description=body.description,
        session_id=session_id,
        subscription_id=subscription_id,
    )

    try:
        data = request_payment(payload, settings)
    except httpx.HTTPStatusError as e:
        try:
            upstream = e.response.json()
        except ValueError:
            upstream = e.response.text
        logger.error("PayTech API response error (%s): %s", e.response.status_code, upstream)
        return _failure(e.response.status_code, "Payment provider error", upstream)
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Payment processing error: %s", e)
        return _failure(500, "An error occurred while processing your payment", str(e))

    if not (isinstance(data, dict) and data.get("success") and data.get("redirect_url")):
        logger.error("PayTech API error: %s", data)
        return _failure(500, "Failed to create payment request", data)

    if session_id or subscription_id:
        db = SessionLocal()
        try:
            result = record_pending_payment(
                db,
                reference=reference,
                amount=body.amount,
                session_id=session_id,
                subscription_id=subscription_id,
            )
            if not result.stored:
                logger.warning("Payment %s not recorded: %s", reference, result.reason)
        except Exception:
            # The payment is already created at PayTech; bookkeeping must not fail it.
            logger.exception("Error storing payment information for %s", reference)
        finally:
            db.close()

    return {
        "success": True,
        "message": "Payment request created successfully",
        "payment_url": data["redirect_url"],
        "token": data.get("token"),
    }


@router.get("/sessions")
def list_sessions():
    db = SessionLocal()
    try:
        rows = db.query(GamingSession).order_by(GamingSession.start_time.asc()).all()
        return {"success": True, "data": jsonable_encoder([r.to_dict() for r in rows])}
    except SQLAlchemyError:
        logger.exception("Error fetching sessions")
        return _failure(500, "Error fetching sessions")
    finally:
        db.close()


@router.get("/subscriptions/{user_id}")
def list_subscriptions(user_id: str, claims: dict = Depends(verify_token)):
    if not can_access_user(claims, user_id):
        raise HTTPException(status_code=403, detail="Forbidden")

    db = SessionLocal()
    try:
        rows = (
            db.query(Subscription)
            .filter_by(user_id=user_id)
            .order_by(Subscription.created_at.desc())
            .all()
        )
        return {"success": True, "data": jsonable_encoder([r.to_dict() for r in rows])}
    except SQLAlchemyError:
        logger.exception("Error fetching subscriptions")
        return _failure(500, "Error fetching subscriptions")
    finally:
        db.close()
