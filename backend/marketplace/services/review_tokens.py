"""Signed links that let a customer review an order item from an email"""
from datetime import datetime, timedelta
from typing import Optional, Tuple

from jose import jwt, JWTError, ExpiredSignatureError

from marketplace.core.config import settings
from marketplace.core.security import ALGORITHM

TOKEN_VALID_DAYS = 30
PURPOSE = "review"


def generate_review_token(order_item_id: int, now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    claims = {
        "sub": str(order_item_id),
        "purpose": PURPOSE,
        "iat": now,
        "exp": now + timedelta(days=TOKEN_VALID_DAYS),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_review_token(token: str) -> Tuple[Optional[int], bool, Optional[str]]:
    """(order_item_id, valid, reason)"""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        return None, False, "Review link has expired"
    except JWTError:
        return None, False, "Invalid review link"

    if claims.get("purpose") != PURPOSE:
        return None, False, "Invalid review link"
    try:
        return int(claims["sub"]), True, None
    except (KeyError, TypeError, ValueError):
        return None, False, "Invalid review link"


def get_review_url(token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/review/{token}"
