"""
Storefront — Cart builder

In-memory mapping of menu item id to a priced line. The price is captured
from the catalog entry the first time an item is added and never refreshed,
so later menu edits do not change what the customer agreed to pay.
"""
from typing import Iterable, Protocol

from storefront.schemas.order import CartLine, PendingOrderDraft


class Priced(Protocol):
    id: str
    name: str
    price: int


class Cart:
    def __init__(self) -> None:
        self._lines: dict[str, CartLine] = {}

    @classmethod
    def from_lines(cls, lines: Iterable[CartLine]) -> "Cart":
        """Rebuild a cart from submitted lines, merging repeated item ids."""
        cart = cls()
        for line in lines:
            existing = cart._lines.get(line.id)
            if existing is None:
                cart._lines[line.id] = line.model_copy()
            else:
                existing.quantity += line.quantity
        return cart

    def increase(self, item: Priced) -> None:
        line = self._lines.get(item.id)
        if line is None:
            self._lines[item.id] = CartLine(id=item.id, name=item.name, price=item.price, quantity=1)
        else:
            line.quantity += 1

    def decrease(self, item: Priced) -> None:
        """Drop one unit; a line that reaches zero is removed, never kept at zero."""
        line = self._lines.get(item.id)
        if line is None:
            return
        if line.quantity > 1:
            line.quantity -= 1
        else:
            del self._lines[item.id]

    def quantity_of(self, item_id: str) -> int:
        line = self._lines.get(item_id)
        return line.quantity if line else 0

    def lines(self) -> list[CartLine]:
        return [line.model_copy() for line in self._lines.values()]

    def total(self) -> int:
        return sum(line.price * line.quantity for line in self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def to_draft(self, store_name: str, phone_number: str | None = None) -> PendingOrderDraft:
        phone = (phone_number or "").strip() or None
        return PendingOrderDraft(
            items=self.lines(),
            total_amount=self.total(),
            store_name=store_name,
            phone_number=phone,
        )
