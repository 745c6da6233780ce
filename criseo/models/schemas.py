from typing import List, Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from enum import Enum


class CamelModel(BaseModel):
    """Base model speaking camelCase on the wire and accepting either case on input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ResourceType(str, Enum):
    SAFEHOUSE = "safehouse"
    WAREHOUSE = "warehouse"
    MEDICAL = "medical"


class ResourceStatus(str, Enum):
    AVAILABLE = "available"
    FULL = "full"
    CLOSED = "closed"


class Location(CamelModel):
    latitude: float
    longitude: float


# === SAFEHOUSES ===

class SafehouseBase(CamelModel):
    name: str
    address: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    # open-ended in practice; ResourceType lists the known values
    type: str
    current_occupancy: int = Field(default=0, ge=0)
    max_capacity: int = Field(..., ge=0)
    phone_number: Optional[str] = None
    status: str = ResourceStatus.AVAILABLE.value
    services: List[str] = Field(default_factory=list)


class SafehouseCreate(SafehouseBase):
    pass


class SafehouseUpdate(CamelModel):
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    type: Optional[str] = None
    current_occupancy: Optional[int] = Field(default=None, ge=0)
    max_capacity: Optional[int] = Field(default=None, ge=0)
    phone_number: Optional[str] = None
    status: Optional[str] = None
    services: Optional[List[str]] = None

    @field_validator(
        "name", "address", "latitude", "longitude", "type",
        "current_occupancy", "max_capacity", "status", "services",
    )
    @classmethod
    def not_null(cls, v):
        # omitted fields stay untouched; an explicit null would blank a required column
        if v is None:
            raise ValueError("field cannot be null")
        return v


class Safehouse(SafehouseBase):
    # stored rows are not re-validated against the input ranges
    latitude: float
    longitude: float
    id: str
    last_updated: datetime
    created_at: datetime


# === RATINGS ===

class RatingCreate(CamelModel):
    safehouse_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class Rating(CamelModel):
    id: str
    safehouse_id: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class SafehouseWithRatings(Safehouse):
    ratings: List[Rating] = Field(default_factory=list)
    average_rating: float = 0.0
    # only set when results are ranked around a center point
    distance: Optional[float] = None


# === ORGANIZATIONS ===

class OrganizationCreate(CamelModel):
    name: str
    type: str
    description: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    services: List[str] = Field(default_factory=list)
    is_verified: bool = False
    response_time: Optional[str] = None
    languages: List[str] = Field(default_factory=list)


class Organization(OrganizationCreate):
    id: str
    created_at: datetime


# === INVENTORY ===

class InventoryCreate(CamelModel):
    safehouse_id: str
    item_name: str
    quantity: float = Field(..., ge=0)
    unit: str
    category: str
    expiry_date: Optional[datetime] = None


class InventoryUpdate(CamelModel):
    item_name: Optional[str] = None
    quantity: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None
    category: Optional[str] = None
    expiry_date: Optional[datetime] = None

    @field_validator("item_name", "quantity", "unit", "category")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v


class InventoryItem(InventoryCreate):
    id: str
    last_updated: datetime


class CategorySummary(CamelModel):
    category: str
    item_count: int
    totals: Dict[str, float]  # unit -> summed quantity


class InventorySummary(CamelModel):
    safehouse_id: str
    total_items: int = 0
    categories: List[CategorySummary] = Field(default_factory=list)
    expiring_soon: int = 0
    expired: int = 0


# === AI ASSISTANT ===

class InventoryLine(CamelModel):
    """An inventory entry as sent by the client to the assistant endpoints."""
    item_name: str
    quantity: float
    unit: str
    expiry_date: Optional[str] = None


class RecommendRequest(CamelModel):
    query: Optional[str] = None
    location: Optional[Location] = None
    user_preferences: Optional[Dict[str, Any]] = None
    user_language: Optional[str] = None


class TranslateRequest(CamelModel):
    text: Optional[str] = None
    target_language: str = "en"


class RecipeRequest(CamelModel):
    inventory: Optional[List[InventoryLine]] = None
    people_count: Optional[int] = None


class RationRequest(RecipeRequest):
    days: int = 1


class ContactInfo(CamelModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class Recommendation(CamelModel):
    type: str
    reason: str
    priority: str
    contact_info: Optional[ContactInfo] = None


class ResourceRecommendation(CamelModel):
    recommendations: List[Recommendation]
    urgency_level: str
    next_steps: List[str]


class Translation(CamelModel):
    detected_language: str
    translated_text: str
    confidence: float


class Ingredient(CamelModel):
    item: str
    quantity: float
    unit: str


class NutritionalInfo(CamelModel):
    calories: Optional[float] = None
    protein: Optional[str] = None
    carbs: Optional[str] = None


class Recipe(CamelModel):
    name: str
    servings: float
    ingredients: List[Ingredient]
    instructions: List[str]
    nutritional_info: Optional[NutritionalInfo] = None


class RationItem(CamelModel):
    item: str
    quantity_per_person: float
    unit: str
    total_quantity: float


class Meal(CamelModel):
    meal: str
    items: List[RationItem]


class RationDay(CamelModel):
    day: int
    meals: List[Meal]


class Shortage(CamelModel):
    item: str
    needed: float
    available: float
    unit: str


class RationPlan(CamelModel):
    total_days: int
    people_count: int
    daily_calories_per_person: float
    ration_breakdown: List[RationDay]
    recommendations: List[str]
    shortages: List[Shortage]


class RecipeBook(CamelModel):
    recipes: List[Recipe] = Field(default_factory=list)
