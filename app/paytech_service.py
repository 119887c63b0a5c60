import json
import random
import re
import time

import httpx

from app.config import Settings

COUNTRY_PREFIX = "221"
CURRENCY = "XOF"
REFERENCE_PREFIX = "WAVE"


def normalize_phone(phone) -> str:
    """Digits only, with the Senegal prefix added to bare 9-digit numbers.

    Anything else (already prefixed, too short, too long) is returned as the
    digit string without complaint.
    """
    digits = re.sub(r"\D", "", str(phone))
    if not digits.startswith(COUNTRY_PREFIX) and len(digits) == 9:
        digits = COUNTRY_PREFIX + digits
    return digits


def generate_reference() -> str:
    # Millisecond timestamp plus a 0-999 suffix: unlikely to collide, not guaranteed unique.
    return f"{REFERENCE_PREFIX}-{int(time.time() * 1000)}-{random.randint(0, 999)}"


def build_payment_request(
    settings: Settings,
    *,
    name: str,
    phone: str,
    amount,
    reference: str,
    ipn_url: str,
    item_name: str = None,
    description: str = None,
    session_id: str = None,
    subscription_id: str = None,
) -> dict:
    return {
        "item_name": item_name or settings.default_item_name,
        "item_price": amount,
        "currency": CURRENCY,
        "reference": reference,
        "command_name": description or f"Payment for {name}",
        "env": settings.paytech_env,
        "ipn_url": ipn_url,
        "success_url": f"{settings.frontend_url}/payment-success",
        "cancel_url": f"{settings.frontend_url}/payment-cancel",
        "custom_field": json.dumps({
            "customer_name": name,
            "customer_phone": phone,
            "session_id": session_id,
            "subscription_id": subscription_id,
        }),
    }


def request_payment(payload: dict, settings: Settings) -> dict:
    """POST a payment request to PayTech and return the decoded JSON body.

    Non-2xx answers raise ``httpx.HTTPStatusError`` so callers can mirror the
    upstream status and body.
    """
    response = httpx.post(
        settings.paytech_api_url,
        json=payload,
        headers={
            "Content-Type": "application/json",
            "API_KEY": settings.paytech_api_key,
            "API_SECRET": settings.paytech_secret_key,
        },
        timeout=settings.paytech_timeout,
    )
    response.raise_for_status()
    return response.json()
