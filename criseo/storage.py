from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from .core.search import ResourceFilter, average_rating, ranked_search
from .models.orm import InventoryORM, OrganizationORM, RatingORM, SafehouseORM
from .models.schemas import (
    InventoryCreate,
    InventoryItem,
    Organization,
    OrganizationCreate,
    Rating,
    RatingCreate,
    Safehouse,
    SafehouseCreate,
    SafehouseWithRatings,
)


class DatabaseStorage:
    """Reads and writes crisis resources through one SQLAlchemy session.

    Nothing is kept between calls; every read goes back to the rows.
    """

    def __init__(self, db: Session):
        self.db = db

    # === SAFEHOUSES ===

    def get_safehouses(self, resource_filter: Optional[ResourceFilter] = None) -> List[SafehouseWithRatings]:
        resource_filter = resource_filter or ResourceFilter()
        query = self.db.query(SafehouseORM)

        # equality filters are pushed down; tags and distance are applied in-process
        if resource_filter.type:
            query = query.filter(SafehouseORM.type == resource_filter.type)
        if resource_filter.status:
            query = query.filter(SafehouseORM.status == resource_filter.status)

        resources = [Safehouse.model_validate(r) for r in query.all()]
        ratings = self._ratings_for([r.id for r in resources])
        return ranked_search(resources, ratings, resource_filter)

    def get_safehouse(self, safehouse_id: str) -> Optional[SafehouseWithRatings]:
        row = self.db.get(SafehouseORM, safehouse_id)
        if row is None:
            return None
        ratings = self.get_safehouse_ratings(safehouse_id)
        return SafehouseWithRatings(
            **Safehouse.model_validate(row).model_dump(),
            ratings=ratings,
            average_rating=average_rating(ratings),
        )

    def create_safehouse(self, data: SafehouseCreate) -> Safehouse:
        row = SafehouseORM(**data.model_dump())
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return Safehouse.model_validate(row)

    def update_safehouse(self, safehouse_id: str, updates: Dict) -> Optional[Safehouse]:
        row = self.db.get(SafehouseORM, safehouse_id)
        if row is None:
            return None
        for field, value in updates.items():
            setattr(row, field, value)
        row.last_updated = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(row)
        return Safehouse.model_validate(row)

    # === RATINGS ===

    def add_rating(self, data: RatingCreate) -> Optional[Rating]:
        """Append a rating; None when the safehouse does not exist."""
        if self.db.get(SafehouseORM, data.safehouse_id) is None:
            return None
        row = RatingORM(**data.model_dump())
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return Rating.model_validate(row)

    def get_safehouse_ratings(self, safehouse_id: str) -> List[Rating]:
        rows = (
            self.db.query(RatingORM)
            .filter(RatingORM.safehouse_id == safehouse_id)
            .order_by(RatingORM.created_at.desc())
            .all()
        )
        return [Rating.model_validate(r) for r in rows]

    def _ratings_for(self, safehouse_ids: Sequence[str]) -> Dict[str, List[Rating]]:
        """Ratings for many safehouses in a single query, newest first."""
        grouped: Dict[str, List[Rating]] = defaultdict(list)
        if not safehouse_ids:
            return grouped
        rows = (
            self.db.query(RatingORM)
            .filter(RatingORM.safehouse_id.in_(list(safehouse_ids)))
            .order_by(RatingORM.created_at.desc())
            .all()
        )
        for r in rows:
            grouped[r.safehouse_id].append(Rating.model_validate(r))
        return grouped

    # === ORGANIZATIONS ===

    def get_organizations(self, verified: Optional[bool] = None) -> List[Organization]:
        query = self.db.query(OrganizationORM)
        if verified is not None:
            query = query.filter(OrganizationORM.is_verified == verified)
        rows = query.order_by(OrganizationORM.is_verified.desc(), OrganizationORM.name.asc()).all()
        return [Organization.model_validate(r) for r in rows]

    def get_organization(self, organization_id: str) -> Optional[Organization]:
        row = self.db.get(OrganizationORM, organization_id)
        return Organization.model_validate(row) if row is not None else None

    def create_organization(self, data: OrganizationCreate) -> Organization:
        row = OrganizationORM(**data.model_dump())
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return Organization.model_validate(row)

    # === INVENTORY ===

    def get_inventory(self, safehouse_id: str) -> List[InventoryItem]:
        rows = (
            self.db.query(InventoryORM)
            .filter(InventoryORM.safehouse_id == safehouse_id)
            .order_by(InventoryORM.category.asc(), InventoryORM.item_name.asc())
            .all()
        )
        return [InventoryItem.model_validate(r) for r in rows]

    def add_inventory_item(self, data: InventoryCreate) -> InventoryItem:
        row = InventoryORM(**data.model_dump(), last_updated=datetime.now(timezone.utc))
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return InventoryItem.model_validate(row)

    def update_inventory_item(self, item_id: str, updates: Dict) -> Optional[InventoryItem]:
        row = self.db.get(InventoryORM, item_id)
        if row is None:
            return None
        for field, value in updates.items():
            setattr(row, field, value)
        row.last_updated = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(row)
        return InventoryItem.model_validate(row)

    def delete_inventory_item(self, item_id: str) -> bool:
        deleted = self.db.query(InventoryORM).filter(InventoryORM.id == item_id).delete()
        self.db.commit()
        return deleted > 0
