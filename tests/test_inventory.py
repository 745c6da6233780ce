from datetime import datetime, timedelta, timezone

from criseo.core.inventory import summarize_inventory
from criseo.models.schemas import InventoryItem

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def item(name, qty, unit, category, expiry=None):
    return InventoryItem(
        id=name.lower(),
        safehouse_id="wh-1",
        item_name=name,
        quantity=qty,
        unit=unit,
        category=category,
        expiry_date=expiry,
        last_updated=NOW,
    )


def test_empty_inventory():
    summary = summarize_inventory("wh-1", [], now=NOW)
    assert summary.total_items == 0
    assert summary.categories == []
    assert summary.expired == 0
    assert summary.expiring_soon == 0


def test_totals_grouped_by_category_and_unit():
    items = [
        item("Rice", 10, "kg", "food"),
        item("Flour", 5.5, "kg", "food"),
        item("Soup", 12, "cans", "food"),
        item("Gauze", 30, "pieces", "medical"),
    ]
    summary = summarize_inventory("wh-1", items, now=NOW)

    assert summary.total_items == 4
    assert [c.category for c in summary.categories] == ["food", "medical"]
    food = summary.categories[0]
    assert food.item_count == 3
    assert food.totals == {"cans": 12.0, "kg": 15.5}


def test_expiry_windows():
    items = [
        item("Milk", 4, "liters", "food", NOW - timedelta(days=1)),
        item("Bread", 8, "loaves", "food", NOW + timedelta(days=2)),
        item("Cheese", 2, "kg", "food", NOW + timedelta(days=30)),
        item("Water", 50, "bottles", "water"),
    ]
    summary = summarize_inventory("wh-1", items, now=NOW, warning_days=7)
    assert summary.expired == 1
    assert summary.expiring_soon == 1

    summary = summarize_inventory("wh-1", items, now=NOW, warning_days=60)
    assert summary.expiring_soon == 2
