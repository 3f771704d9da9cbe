"""
Shopping carts in Redis

Stored as JSON under cart:{cart_id} with a sliding TTL. A cart only ever
holds items from one store.

    {"store_id": 1, "store_slug": "acme", "store_name": "Acme",
     "items": [{"cart_item_id": "12-40", "product_id": 12, "variant_id": 40, ...}]}
"""

import json
import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from marketplace.core.config import settings

logger = logging.getLogger(__name__)

CART_COOKIE = "cart_id"


def new_cart_id() -> str:
    return uuid.uuid4().hex


def cart_item_id(product_id: int, variant_id: Optional[int] = None) -> str:
    return f"{product_id}-{variant_id}" if variant_id else str(product_id)


def empty_cart() -> Dict[str, Any]:
    return {"store_id": None, "store_slug": None, "store_name": None, "items": []}


def cart_subtotal(cart: Dict[str, Any]) -> Decimal:
    total = Decimal("0")
    for item in cart.get("items", []):
        total += Decimal(str(item["price"])) * item["quantity"]
    return total.quantize(Decimal("0.01"))


def cart_item_count(cart: Dict[str, Any]) -> int:
    return sum(item["quantity"] for item in cart.get("items", []))


class CartStore:
    """Cart persistence on top of an async Redis client"""

    def __init__(self, redis: Redis, ttl: int = None, key_prefix: str = "cart") -> None:
        self.redis = redis
        self.ttl = ttl or settings.CART_TTL_SECONDS
        self.key_prefix = key_prefix

    def _make_key(self, cart_id: str) -> str:
        return f"{self.key_prefix}:{cart_id}"

    async def get(self, cart_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not cart_id:
            return None
        try:
            value = await self.redis.get(self._make_key(cart_id))
        except RedisError as e:
            logger.error(f"Redis GET failed for cart {cart_id}: {e}")
            raise
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.error(f"Corrupt cart payload for {cart_id}, discarding")
            return None

    async def save(self, cart_id: str, cart: Dict[str, Any]) -> None:
        await self.redis.setex(self._make_key(cart_id), self.ttl, json.dumps(cart))

    async def delete(self, cart_id: str) -> None:
        await self.redis.delete(self._make_key(cart_id))
