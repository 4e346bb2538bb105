"""
Tests for selection parsing and order snapshots.
"""
import pytest

from restaurant_bot.errors import NotFoundError
from restaurant_bot.schemas.menu import MenuItemOut
from restaurant_bot.services.cart import (
    OrderLine,
    build_snapshot,
    cart_total,
    parse_selection,
    resolve_cart,
    select_items,
    snapshot_total,
)

MENU = [
    MenuItemOut(id=1, name="Jollof Rice", price=1500, description="Classic Nigerian Jollof"),
    MenuItemOut(id=2, name="Pounded Yam", price=2000, description="With Egusi Soup"),
    MenuItemOut(id=3, name="Chicken Suya", price=1200, description="Spicy grilled chicken"),
    MenuItemOut(id=7, name="Chapman Cocktail", price=800, description="Signature drink"),
]


class TestParseSelection:

    def test_parses_comma_separated_numbers(self):
        assert parse_selection("1,3") == [1, 3]

    def test_ignores_blank_and_non_numeric_parts(self):
        assert parse_selection("1,,x, 3 ") == [1, 3]

    def test_leading_zeros(self):
        assert parse_selection("01,03") == [1, 3]

    def test_only_ascii_digits(self):
        # Arabic-Indic one and superscript two
        assert parse_selection("١,²,3") == [3]

    def test_huge_positions_are_dropped(self):
        assert parse_selection("9" * 5000 + ",2") == [2]
        assert parse_selection("0000002") == [2]


class TestSelectItems:

    def test_positions_are_one_based(self):
        selected = select_items(MENU, "1,3")
        assert [item.name for item in selected] == ["Jollof Rice", "Chicken Suya"]

    def test_position_not_id(self):
        # Fourth position is id 7
        assert [item.id for item in select_items(MENU, "4")] == [7]

    def test_out_of_range_positions_dropped(self):
        assert [item.id for item in select_items(MENU, "0,2,5,99")] == [2]

    def test_nothing_valid(self):
        assert select_items(MENU, "8,9") == []

    def test_total_is_sum_of_selected_prices(self):
        selected = select_items(MENU, "1,3")
        assert cart_total(selected) == 1500 + 1200


class TestResolveCart:

    def test_all_present(self):
        available = {item.id: item for item in MENU}
        assert [item.id for item in resolve_cart([3, 1], available)] == [3, 1]

    def test_missing_item_raises(self):
        available = {1: MENU[0]}
        with pytest.raises(NotFoundError):
            resolve_cart([1, 3], available)


class TestBuildSnapshot:

    def test_one_line_per_item(self):
        lines = build_snapshot([MENU[0], MENU[2]])
        assert lines == [
            OrderLine(menu_item_id=1, name="Jollof Rice", price=1500),
            OrderLine(menu_item_id=3, name="Chicken Suya", price=1200),
        ]
        assert snapshot_total(lines) == 2700

    def test_repeats_fold_into_quantity(self):
        lines = build_snapshot([MENU[0], MENU[2], MENU[0]])

        assert [(line.menu_item_id, line.quantity) for line in lines] == [(1, 2), (3, 1)]
        assert lines[0].line_total == 3000
        assert snapshot_total(lines) == 1500 * 2 + 1200

    def test_empty(self):
        assert build_snapshot([]) == []
        assert snapshot_total([]) == 0
