import json
import logging
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.database import SessionLocal
from app.logger import setup_logging
from app.repository import (
    update_payment_status,
    update_session_status,
    update_subscription_status,
)
from app.routes import router

setup_logging()
logger = logging.getLogger(__name__)

settings = get_settings()
missing = settings.missing()
if missing:
    raise RuntimeError(f"{', '.join(missing)} not set. Check your .env file.")

app = FastAPI(title="Wave Payment Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal Server Error"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request body"},
    )


class PaymentNotification(BaseModel):
    token: Optional[str] = None
    status: Optional[str] = None
    reference: Optional[str] = None
    custom_field: Optional[Any] = None


def parse_custom_field(raw) -> dict:
    """Session/subscription linkage sent to PayTech at initiation time."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.error("Error parsing custom field: %r", raw)
        return {}
    return value if isinstance(value, dict) else {}


@app.post("/api/payment-callback")
def payment_callback(notification: Optional[PaymentNotification] = None):
    logger.info("Payment callback received: %s", notification)

    if notification is None or not notification.token or not notification.status:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Invalid payment data"},
        )

    try:
        custom = parse_custom_field(notification.custom_field)
        session_id = custom.get("session_id")
        subscription_id = custom.get("subscription_id")
        completed = notification.status == "completed"

        db = SessionLocal()
        try:
            if notification.reference:
                update_payment_status(
                    db, notification.reference, "completed" if completed else "failed"
                )

            if completed:
                if session_id:
                    update_session_status(db, session_id, "confirmed")
                elif subscription_id:
                    update_subscription_status(db, subscription_id, "active")
        finally:
            db.close()
    except Exception:
        logger.exception("Payment callback error")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Error processing payment callback"},
        )

    return {"success": True, "message": "Payment notification received"}


@app.get("/api/health")
def health():
    return {"success": True, "status": "ok"}


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
