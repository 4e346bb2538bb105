"""
Cart Builder
============

Turns the raw numbers a customer types into validated menu references, and
turns a cart into the immutable line snapshot an order is created from.

Selections are 1-based positions in the displayed menu. Entries that are not
numbers or fall outside the menu are dropped. Selecting the same position
twice ("1,1") puts the item in the cart twice; the snapshot folds repeats
into a single line with a quantity.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

from ..errors import NotFoundError
from ..schemas.menu import MenuItemOut

# No menu is this long; longer positions are out of range anyway
MAX_POSITION_DIGITS = 6


@dataclass(frozen=True)
class OrderLine:
    menu_item_id: int
    name: str
    price: int
    quantity: int = 1

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


def parse_selection(raw: str) -> List[int]:
    """
    Parse "1,3" into [1, 3], ignoring blank or non-numeric entries.

    Only ASCII digits count, and a position longer than
    ``MAX_POSITION_DIGITS`` (leading zeros aside) is dropped like any other
    invalid entry.
    """
    numbers = []
    for part in raw.split(","):
        part = part.strip()
        if not (part.isascii() and part.isdigit()):
            continue
        if len(part.lstrip("0")) > MAX_POSITION_DIGITS:
            continue
        numbers.append(int(part))
    return numbers


def select_items(menu: Sequence[MenuItemOut], raw: str) -> List[MenuItemOut]:
    """Map 1-based menu positions in ``raw`` to menu items, dropping invalid ones."""
    selected = []
    for position in parse_selection(raw):
        index = position - 1
        if 0 <= index < len(menu):
            selected.append(menu[index])
    return selected


def cart_total(items: Sequence[MenuItemOut]) -> int:
    return sum(item.price for item in items)


def resolve_cart(cart: Sequence[int], available: Dict[int, MenuItemOut]) -> List[MenuItemOut]:
    """
    Re-validate cart ids against the current catalog.

    Args:
        cart: Menu item ids in cart order
        available: Items returned by the catalog for those ids

    Raises:
        NotFoundError: at least one id is no longer on the menu.
    """
    missing = [item_id for item_id in cart if item_id not in available]
    if missing:
        raise NotFoundError(f"Menu items no longer available: {missing}")
    return [available[item_id] for item_id in cart]


def build_snapshot(items: Sequence[MenuItemOut]) -> List[OrderLine]:
    """Fold cart items into order lines, keeping first-seen order."""
    lines: Dict[int, OrderLine] = {}
    for item in items:
        existing = lines.get(item.id)
        if existing is None:
            lines[item.id] = OrderLine(menu_item_id=item.id, name=item.name, price=item.price)
        else:
            lines[item.id] = OrderLine(
                menu_item_id=item.id,
                name=item.name,
                price=item.price,
                quantity=existing.quantity + 1,
            )
    return list(lines.values())


def snapshot_total(lines: Sequence[OrderLine]) -> int:
    return sum(line.line_total for line in lines)
