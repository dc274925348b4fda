from __future__ import annotations

from decimal import Decimal
from typing import Dict, List

from shop.models import ZERO, CartSnapshot, LineItem, Product
from utils.logger import get_logger

_logger = get_logger(__name__)


class CartStore:
    """
    In-memory cart of the active session.

    Line items are keyed by product id and kept in first-add order.
    The running total is adjusted on every mutation so it always equals
    the sum of unit_price * quantity over the items.
    None of the operations raise; a remove of an absent product is a no-op.
    """

    def __init__(self) -> None:
        self._items: Dict[str, LineItem] = {}
        self._total: Decimal = ZERO

    @property
    def items(self) -> List[LineItem]:
        return list(self._items.values())

    @property
    def total(self) -> Decimal:
        return self._total

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def quantity_of(self, pid: str) -> int:
        item = self._items.get(pid)
        return item.quantity if item else 0

    def add(self, product: Product) -> None:
        existing = self._items.get(product.pid)
        if existing:
            # keep the first-add price so the total stays the item sum
            self._items[product.pid] = LineItem(
                pid=existing.pid,
                name=existing.name,
                unit_price=existing.unit_price,
                quantity=existing.quantity + 1,
                image_url=existing.image_url,
            )
            self._total += existing.unit_price
        else:
            self._items[product.pid] = LineItem(
                pid=product.pid,
                name=product.name,
                unit_price=product.price,
                quantity=1,
                image_url=product.image_url,
            )
            self._total += product.price
        _logger.debug(f"Added {product.pid} to cart, total {self._total}")

    def remove(self, product: Product) -> None:
        existing = self._items.get(product.pid)
        if existing is None:
            _logger.warning(f"Ignoring remove of {product.pid}: not in cart")
            return

        if existing.quantity > 1:
            self._items[product.pid] = LineItem(
                pid=existing.pid,
                name=existing.name,
                unit_price=existing.unit_price,
                quantity=existing.quantity - 1,
                image_url=existing.image_url,
            )
        else:
            del self._items[product.pid]
        self._total -= existing.unit_price
        _logger.debug(f"Removed {product.pid} from cart, total {self._total}")

    def clear(self) -> None:
        self._items = {}
        self._total = ZERO

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(items=tuple(self._items.values()), total=self._total)
