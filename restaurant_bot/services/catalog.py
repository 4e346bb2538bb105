"""
Menu Catalog Service
====================

Read-only lookups over the menu_items table. The conversation layer only ever
sees ``MenuItemOut`` values, never ORM objects, so results can be passed
between the worker thread and the event loop safely.

Display order is the primary key order; the 1-based index a customer types
("1,3") is a position in ``list_items()``.

Seeding:
--------
``seed_sample_menu`` inserts the house menu when the table is empty. It is
called at startup when SEED_MENU is enabled.
"""

import logging
from typing import Dict, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceError
from ..models import MenuItem
from ..schemas.menu import MenuItemCreate, MenuItemOut


logger = logging.getLogger(__name__)


SAMPLE_MENU = [
    {"name": "Jollof Rice", "price": 1500, "description": "Classic Nigerian Jollof"},
    {"name": "Pounded Yam", "price": 2000, "description": "With Egusi Soup"},
    {"name": "Chicken Suya", "price": 1200, "description": "Spicy grilled chicken"},
    {"name": "Chapman Cocktail", "price": 800, "description": "Signature drink"},
]


def list_items(db: Session) -> List[MenuItemOut]:
    """Return every menu item in display order."""
    try:
        rows = db.query(MenuItem).order_by(MenuItem.id).all()
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to load menu") from exc
    return [MenuItemOut.model_validate(row) for row in rows]


def get_items_by_ids(db: Session, item_ids: Iterable[int]) -> Dict[int, MenuItemOut]:
    """
    Look up menu items by id.

    Returns:
        Mapping of id to item for the ids that still exist. Missing ids are
        simply absent, so callers can compare lengths to detect vanished items.
    """
    ids = set(item_ids)
    if not ids:
        return {}
    try:
        rows = db.query(MenuItem).filter(MenuItem.id.in_(ids)).all()
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to load menu items") from exc
    return {row.id: MenuItemOut.model_validate(row) for row in rows}


def seed_sample_menu(db: Session) -> int:
    """
    Insert SAMPLE_MENU if the catalog is empty.

    Returns:
        Number of items inserted (0 when the menu already had items).
    """
    existing = db.query(MenuItem).count()
    if existing > 0:
        logger.debug("Menu already has %d items; not seeding", existing)
        return 0

    for raw in SAMPLE_MENU:
        item = MenuItemCreate(**raw)
        db.add(MenuItem(**item.model_dump()))
    db.commit()

    logger.info("Sample menu items created (%d)", len(SAMPLE_MENU))
    return len(SAMPLE_MENU)
