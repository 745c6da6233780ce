from typing import List, Optional
from datetime import datetime, timezone
import pandas as pd

from .config import settings
from ..models.schemas import CategorySummary, InventoryItem, InventorySummary


def summarize_inventory(
    safehouse_id: str,
    items: List[InventoryItem],
    now: Optional[datetime] = None,
    warning_days: Optional[int] = None,
) -> InventorySummary:
    """Group a safehouse's stock by category and count items near expiry"""
    if not items:
        return InventorySummary(safehouse_id=safehouse_id)

    if warning_days is None:
        warning_days = settings.EXPIRY_WARNING_DAYS
    now_ts = pd.Timestamp(now or datetime.now(timezone.utc))
    if now_ts.tzinfo is None:
        now_ts = now_ts.tz_localize("UTC")

    df = pd.DataFrame({
        'category': [i.category for i in items],
        'unit': [i.unit for i in items],
        'quantity': [float(i.quantity) for i in items],
        'expiry_date': [i.expiry_date for i in items],
    })
    # naive timestamps (SQLite) are stored as UTC
    expiry = pd.to_datetime(df['expiry_date'], utc=True)

    categories = []
    for category, group in df.groupby('category', sort=True):
        totals = group.groupby('unit')['quantity'].sum()
        categories.append(CategorySummary(
            category=str(category),
            item_count=int(len(group)),
            totals={str(unit): float(qty) for unit, qty in totals.items()},
        ))

    horizon = now_ts + pd.Timedelta(days=warning_days)
    expired = int((expiry < now_ts).sum())
    expiring_soon = int(((expiry >= now_ts) & (expiry <= horizon)).sum())

    return InventorySummary(
        safehouse_id=safehouse_id,
        total_items=len(items),
        categories=categories,
        expiring_soon=expiring_soon,
        expired=expired,
    )
