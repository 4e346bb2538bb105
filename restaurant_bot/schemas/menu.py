"""
Menu Item Schemas
=================

Pydantic models describing menu items. ``MenuItemCreate`` carries the same
constraints as the menu_items table (name of at least 3 characters, price
between 100 and 10,000, description up to 100 characters) and is used when
seeding the catalog.

Usage:
------
    item = MenuItemCreate(name="Jollof Rice", price=1500, description="Classic Nigerian Jollof")
    db.add(MenuItem(**item.model_dump()))

    out = MenuItemOut.model_validate(db_item)
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=3)
    price: int = Field(..., ge=100, le=10000)
    description: Optional[str] = Field(None, max_length=100)

    model_config = ConfigDict(str_strip_whitespace=True)


class MenuItemOut(BaseModel):
    """Menu item as the conversation layer sees it."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: int
    description: Optional[str] = None
