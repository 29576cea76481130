import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


@dataclass
class CartLine:
    item_id: str
    name: str
    price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return (self.price * self.quantity).quantize(TWO_PLACES)


def format_price(value: Decimal, symbol: str = "₹") -> str:
    return f"{symbol}{Decimal(value).quantize(TWO_PLACES):,}"


def _check_quantity(qty) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise TypeError(f"quantity must be an integer, got {qty!r}")
    return qty


class Cart:
    def __init__(self, slug: str, on_change: Optional[Callable[["Cart"], None]] = None):
        self.slug = slug
        self._lines: Dict[str, CartLine] = {}
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._lines

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def add_item(self, item, initial_qty: int = 1) -> bool:
        """Insert ``item`` unless it is already in the cart.

        Adding an item that is present leaves its quantity untouched; only
        ``update_quantity`` changes an existing line. Returns whether a line
        was inserted.
        """
        initial_qty = _check_quantity(initial_qty)
        item_id = str(item.id)
        if item_id in self._lines or initial_qty <= 0:
            return False
        self._lines[item_id] = CartLine(
            item_id=item_id,
            name=item.name,
            price=Decimal(item.price),
            quantity=initial_qty,
        )
        logger.debug("cart %s: added %s x%d", self.slug, item_id, initial_qty)
        self._changed()
        return True

    def update_quantity(self, item_id: str, new_qty: int) -> None:
        new_qty = _check_quantity(new_qty)
        if new_qty <= 0:
            if self._lines.pop(item_id, None) is not None:
                logger.debug("cart %s: removed %s", self.slug, item_id)
                self._changed()
            return
        line = self._lines.get(item_id)
        if line is None:
            # nothing to update for an item that was never added
            return
        line.quantity = new_qty
        self._changed()

    def get_quantity(self, item_id: str) -> int:
        line = self._lines.get(item_id)
        return line.quantity if line else 0

    def total_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def total_price(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), Decimal("0.00"))

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def clear(self) -> None:
        if self._lines:
            self._lines.clear()
            self._changed()

    def restore(self, lines: Iterable[CartLine]) -> None:
        """Load previously saved lines without notifying the change hook."""
        self._lines = {line.item_id: line for line in lines if line.quantity > 0}
