from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt

from app.config import Settings, get_settings


def verify_token(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Decode the bearer token and return its claims."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization.split(" ", 1)[1].strip()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def can_access_user(claims: dict, user_id: str) -> bool:
    return claims.get("sub") == user_id or bool(claims.get("isAdmin"))
