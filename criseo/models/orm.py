from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Boolean, JSON, ForeignKey
from sqlalchemy.orm import relationship
from ..db import Base


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SafehouseORM(Base):
    __tablename__ = 'safehouses'

    id = Column(String(64), primary_key=True, index=True, default=_new_id)
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    type = Column(String(32), nullable=False, index=True)  # safehouse, warehouse, medical
    current_occupancy = Column(Integer, nullable=False, default=0)
    max_capacity = Column(Integer, nullable=False)
    phone_number = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="available", index=True)  # available, full, closed
    services = Column(JSON, nullable=False, default=list)
    last_updated = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    ratings = relationship("RatingORM", back_populates="safehouse")
    inventory = relationship("InventoryORM", back_populates="safehouse")


class RatingORM(Base):
    __tablename__ = 'ratings'

    id = Column(String(64), primary_key=True, index=True, default=_new_id)
    safehouse_id = Column(String(64), ForeignKey('safehouses.id'), nullable=False, index=True)
    rating = Column(Integer, nullable=False)  # 1-5 stars
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    safehouse = relationship("SafehouseORM", back_populates="ratings")


class OrganizationORM(Base):
    __tablename__ = 'organizations'

    id = Column(String(64), primary_key=True, index=True, default=_new_id)
    name = Column(Text, nullable=False)
    type = Column(String(32), nullable=False)  # ngo, government, charity
    description = Column(Text, nullable=True)
    phone_number = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    website = Column(Text, nullable=True)
    services = Column(JSON, nullable=False, default=list)
    is_verified = Column(Boolean, nullable=False, default=False)
    response_time = Column(Text, nullable=True)  # e.g. "< 1 hour"
    languages = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class InventoryORM(Base):
    __tablename__ = 'inventory'

    id = Column(String(64), primary_key=True, index=True, default=_new_id)
    safehouse_id = Column(String(64), ForeignKey('safehouses.id'), nullable=False, index=True)
    item_name = Column(Text, nullable=False)
    quantity = Column(Float, nullable=False)
    unit = Column(String(32), nullable=False)  # kg, pieces, bottles
    category = Column(String(32), nullable=False)  # food, medical, clothing, water
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    last_updated = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    safehouse = relationship("SafehouseORM", back_populates="inventory")
