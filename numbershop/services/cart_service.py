# numbershop/services/cart_service.py
import json
import uuid
from decimal import Decimal
from functools import lru_cache
from typing import List, Dict

import redis

from numbershop.domain.errors import NotFound
from numbershop.domain.pricing import enforce_sms_minimum, cart_total, price_breakdown
from numbershop.domain.schemas import CartItem, CartItemUpdate
from numbershop.utils.retry import redis_retry
from numbershop.utils.settings import REDIS_URL, CART_TTL_SECONDS
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)


class CartStore:
    """
    Koszyk w redisie: klucz cart:<user_id>, wartosc to lista pozycji w JSON.
    Kazdy zapis przedluza TTL (sliding expiry).
    """

    def __init__(self, url: str | None = None, ttl: int = CART_TTL_SECONDS):
        self.redis = redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl

    @staticmethod
    def _key(user_id: int) -> str:
        return f"cart:{user_id}"

    @redis_retry()
    def load(self, user_id: int) -> List[CartItem]:
        raw = self.redis.get(self._key(user_id))
        if not raw:
            return []
        return [CartItem.model_validate(d) for d in json.loads(raw)]

    @redis_retry()
    def save(self, user_id: int, items: List[CartItem]) -> None:
        payload = json.dumps([i.model_dump(mode="json") for i in items])
        self.redis.set(self._key(user_id), payload, ex=self.ttl)

    @redis_retry()
    def delete(self, user_id: int) -> None:
        self.redis.delete(self._key(user_id))

    @redis_retry()
    def ping(self) -> bool:
        return bool(self.redis.ping())


@lru_cache
def get_cart_store() -> CartStore:
    return CartStore()


class CartService:
    """
    Use case'y koszyka.
    commands (add, update, remove, clear) zapisuja stan w store
    query (items, get, total, breakdown) tylko odczyt
    """

    def __init__(self, store: CartStore):
        self.store = store

    # query
    def items(self, user_id: int) -> List[CartItem]:
        return self.store.load(user_id)

    def get(self, user_id: int, item_id: str) -> CartItem | None:
        return next((i for i in self.items(user_id) if i.id == item_id), None)

    def total(self, user_id: int) -> Decimal:
        return cart_total(self.items(user_id))

    def item_count(self, user_id: int) -> int:
        return len(self.items(user_id))

    def breakdown(self, user_id: int) -> Dict[str, Decimal]:
        return price_breakdown(self.items(user_id))

    def snapshot(self, user_id: int) -> Dict:
        items = self.items(user_id)
        return {"items": items, "total": cart_total(items), "item_count": len(items)}

    # commands
    def add(self, user_id: int, item: CartItem) -> CartItem:
        stored = enforce_sms_minimum(item.model_copy(update={"id": uuid.uuid4().hex}))

        items = self.items(user_id)
        items.append(stored)
        self.store.save(user_id, items)

        logger.info(f"Cart {user_id}: added {stored.phone_number} as item {stored.id}")
        return stored

    def update(self, user_id: int, item_id: str, changes: CartItemUpdate) -> CartItem:
        items = self.items(user_id)

        for idx, current in enumerate(items):
            if current.id != item_id:
                continue
            # walidacja calosci po scaleniu, nie tylko zmienionych pol
            merged = CartItem.model_validate({
                **current.model_dump(),
                **changes.model_dump(exclude_unset=True, exclude_none=True),
            })
            items[idx] = enforce_sms_minimum(merged)
            self.store.save(user_id, items)
            logger.info(f"Cart {user_id}: updated item {item_id}")
            return items[idx]

        raise NotFound(f"Cart item {item_id} not found")

    def remove(self, user_id: int, item_id: str) -> None:
        items = self.items(user_id)
        remaining = [i for i in items if i.id != item_id]

        if len(remaining) == len(items):
            return

        self.store.save(user_id, remaining)
        logger.info(f"Cart {user_id}: removed item {item_id}")

    def clear(self, user_id: int) -> None:
        self.store.delete(user_id)
        logger.info(f"Cart {user_id} cleared")
