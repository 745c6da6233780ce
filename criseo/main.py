from typing import List, Optional
import logging
import os

from fastapi import FastAPI, HTTPException, Query, Depends, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.assistant import AssistantError, CrisisAssistant, assistant
from .core.inventory import summarize_inventory
from .core.logging_config import configure_logging
from .core.search import build_filter
from .models.schemas import (
    InventoryCreate,
    InventoryItem,
    InventorySummary,
    InventoryUpdate,
    Organization,
    OrganizationCreate,
    RationPlan,
    RationRequest,
    Rating,
    RatingCreate,
    Recipe,
    RecipeRequest,
    RecommendRequest,
    ResourceRecommendation,
    Safehouse,
    SafehouseCreate,
    SafehouseUpdate,
    SafehouseWithRatings,
    TranslateRequest,
    Translation,
)
from .db import SessionLocal, engine, Base
from .storage import DatabaseStorage

logger = logging.getLogger(__name__)

API = settings.API_PREFIX

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{API}/openapi.json"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(settings.DATA_DIR, exist_ok=True)


@app.on_event("startup")
def on_startup():
    """Create DB tables on startup"""
    configure_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("Criseo API started against %s", engine.url.render_as_string(hide_password=True))


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_logger = logging.getLogger("criseo.requests")
    request_logger.info("Incoming request %s %s", request.method, request.url)
    response = await call_next(request)
    request_logger.info("Completed %s %s -> %s", request.method, request.url, response.status_code)
    return response


# === ERROR HANDLING ===

# endpoint name -> message returned when its body or query fails validation
VALIDATION_MESSAGES = {
    "create_safehouse": "Invalid safehouse data",
    "update_safehouse": "Invalid update data",
    "add_rating": "Invalid rating data",
    "create_organization": "Invalid organization data",
    "add_inventory_item": "Invalid inventory data",
    "update_inventory_item": "Invalid update data",
}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    endpoint = request.scope.get("endpoint")
    message = VALIDATION_MESSAGES.get(getattr(endpoint, "__name__", None), "Invalid request data")
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message, "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def server_error(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return server_error("Internal server error")


# === DEPENDENCIES ===

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage(db: Session = Depends(get_db)) -> DatabaseStorage:
    return DatabaseStorage(db)


def get_assistant() -> CrisisAssistant:
    return assistant


# === SAFEHOUSE ENDPOINTS ===

@app.get(f"{API}/safehouses", response_model=List[SafehouseWithRatings])
def list_safehouses(
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius: float = Query(default=settings.DEFAULT_SEARCH_RADIUS_KM, ge=0),
    type: Optional[str] = None,
    services: Optional[List[str]] = Query(default=None),
    status_filter: Optional[str] = Query(default=settings.DEFAULT_SEARCH_STATUS, alias="status"),
    storage: DatabaseStorage = Depends(get_storage),
):
    """Search resources, nearest first when a location is given"""
    center = (latitude, longitude) if latitude is not None and longitude is not None else None
    resource_filter = build_filter(
        type=type,
        status=status_filter,
        services=services,
        center=center,
        radius=radius if center is not None else None,
    )
    try:
        return storage.get_safehouses(resource_filter)
    except SQLAlchemyError:
        logger.exception("Error fetching safehouses")
        return server_error("Failed to fetch safehouses")


@app.get(f"{API}/safehouses/{{safehouse_id}}", response_model=SafehouseWithRatings)
def get_safehouse(safehouse_id: str, storage: DatabaseStorage = Depends(get_storage)):
    try:
        safehouse = storage.get_safehouse(safehouse_id)
    except SQLAlchemyError:
        logger.exception("Error fetching safehouse %s", safehouse_id)
        return server_error("Failed to fetch safehouse")
    if safehouse is None:
        raise HTTPException(status_code=404, detail="Safehouse not found")
    return safehouse


@app.post(f"{API}/safehouses", response_model=Safehouse, status_code=status.HTTP_201_CREATED)
def create_safehouse(safehouse: SafehouseCreate, storage: DatabaseStorage = Depends(get_storage)):
    try:
        return storage.create_safehouse(safehouse)
    except SQLAlchemyError:
        logger.exception("Error creating safehouse")
        return server_error("Failed to create safehouse")


@app.patch(f"{API}/safehouses/{{safehouse_id}}", response_model=Safehouse)
def update_safehouse(
    safehouse_id: str,
    updates: SafehouseUpdate,
    storage: DatabaseStorage = Depends(get_storage),
):
    """Partially update a safehouse; last_updated always moves forward"""
    try:
        safehouse = storage.update_safehouse(safehouse_id, updates.model_dump(exclude_unset=True))
    except SQLAlchemyError:
        logger.exception("Error updating safehouse %s", safehouse_id)
        return server_error("Failed to update safehouse")
    if safehouse is None:
        raise HTTPException(status_code=404, detail="Safehouse not found")
    return safehouse


# === RATING ENDPOINTS ===

@app.post(f"{API}/ratings", response_model=Rating, status_code=status.HTTP_201_CREATED)
def add_rating(rating: RatingCreate, storage: DatabaseStorage = Depends(get_storage)):
    try:
        created = storage.add_rating(rating)
    except SQLAlchemyError:
        logger.exception("Error adding rating")
        return server_error("Failed to add rating")
    if created is None:
        raise HTTPException(status_code=404, detail="Safehouse not found")
    return created


@app.get(f"{API}/safehouses/{{safehouse_id}}/ratings", response_model=List[Rating])
def list_ratings(safehouse_id: str, storage: DatabaseStorage = Depends(get_storage)):
    try:
        return storage.get_safehouse_ratings(safehouse_id)
    except SQLAlchemyError:
        logger.exception("Error fetching ratings for %s", safehouse_id)
        return server_error("Failed to fetch ratings")


# === ORGANIZATION ENDPOINTS ===

@app.get(f"{API}/organizations", response_model=List[Organization])
def list_organizations(verified: Optional[bool] = None, storage: DatabaseStorage = Depends(get_storage)):
    """Verified organizations first, then alphabetical"""
    try:
        return storage.get_organizations(verified)
    except SQLAlchemyError:
        logger.exception("Error fetching organizations")
        return server_error("Failed to fetch organizations")


@app.get(f"{API}/organizations/{{organization_id}}", response_model=Organization)
def get_organization(organization_id: str, storage: DatabaseStorage = Depends(get_storage)):
    try:
        organization = storage.get_organization(organization_id)
    except SQLAlchemyError:
        logger.exception("Error fetching organization %s", organization_id)
        return server_error("Failed to fetch organization")
    if organization is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return organization


@app.post(f"{API}/organizations", response_model=Organization, status_code=status.HTTP_201_CREATED)
def create_organization(organization: OrganizationCreate, storage: DatabaseStorage = Depends(get_storage)):
    try:
        return storage.create_organization(organization)
    except SQLAlchemyError:
        logger.exception("Error creating organization")
        return server_error("Failed to create organization")


# === INVENTORY ENDPOINTS ===

@app.get(f"{API}/safehouses/{{safehouse_id}}/inventory", response_model=List[InventoryItem])
def list_inventory(safehouse_id: str, storage: DatabaseStorage = Depends(get_storage)):
    try:
        return storage.get_inventory(safehouse_id)
    except SQLAlchemyError:
        logger.exception("Error fetching inventory for %s", safehouse_id)
        return server_error("Failed to fetch inventory")


@app.get(f"{API}/safehouses/{{safehouse_id}}/inventory/summary", response_model=InventorySummary)
def inventory_summary(safehouse_id: str, storage: DatabaseStorage = Depends(get_storage)):
    """Per-category totals plus expired / expiring-soon counts"""
    try:
        items = storage.get_inventory(safehouse_id)
    except SQLAlchemyError:
        logger.exception("Error fetching inventory for %s", safehouse_id)
        return server_error("Failed to fetch inventory")
    return summarize_inventory(safehouse_id, items)


@app.post(f"{API}/inventory", response_model=InventoryItem, status_code=status.HTTP_201_CREATED)
def add_inventory_item(item: InventoryCreate, storage: DatabaseStorage = Depends(get_storage)):
    try:
        return storage.add_inventory_item(item)
    except SQLAlchemyError:
        logger.exception("Error adding inventory item")
        return server_error("Failed to add inventory item")


@app.patch(f"{API}/inventory/{{item_id}}", response_model=InventoryItem)
def update_inventory_item(item_id: str, updates: InventoryUpdate, storage: DatabaseStorage = Depends(get_storage)):
    try:
        item = storage.update_inventory_item(item_id, updates.model_dump(exclude_unset=True))
    except SQLAlchemyError:
        logger.exception("Error updating inventory item %s", item_id)
        return server_error("Failed to update inventory item")
    if item is None:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item


@app.delete(f"{API}/inventory/{{item_id}}", status_code=status.HTTP_204_NO_CONTENT)
def delete_inventory_item(item_id: str, storage: DatabaseStorage = Depends(get_storage)):
    try:
        deleted = storage.delete_inventory_item(item_id)
    except SQLAlchemyError:
        logger.exception("Error deleting inventory item %s", item_id)
        return server_error("Failed to delete inventory item")
    if not deleted:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === AI ASSISTANT ENDPOINTS ===

@app.post(f"{API}/ai/recommend", response_model=ResourceRecommendation)
def recommend(body: RecommendRequest, ai: CrisisAssistant = Depends(get_assistant)):
    if not body.query:
        raise HTTPException(status_code=400, detail="Query is required")
    try:
        return ai.recommend(body.query, body.location, body.user_preferences, body.user_language)
    except AssistantError:
        logger.exception("Error getting AI recommendation")
        return server_error("Failed to get AI recommendation")


@app.post(f"{API}/ai/translate", response_model=Translation)
def translate(body: TranslateRequest, ai: CrisisAssistant = Depends(get_assistant)):
    if not body.text:
        raise HTTPException(status_code=400, detail="Text is required")
    try:
        return ai.translate(body.text, body.target_language)
    except AssistantError:
        logger.exception("Error with language detection/translation")
        return server_error("Failed to process language request")


@app.post(f"{API}/ai/recipes", response_model=List[Recipe])
def recipes(body: RecipeRequest, ai: CrisisAssistant = Depends(get_assistant)):
    if not body.inventory or not body.people_count:
        raise HTTPException(status_code=400, detail="Inventory and people count are required")
    try:
        return ai.generate_recipes(body.inventory, body.people_count)
    except AssistantError:
        logger.exception("Error generating recipes")
        return server_error("Failed to generate recipes")


@app.post(f"{API}/ai/rations", response_model=RationPlan)
def rations(body: RationRequest, ai: CrisisAssistant = Depends(get_assistant)):
    if not body.inventory or not body.people_count:
        raise HTTPException(status_code=400, detail="Inventory and people count are required")
    try:
        return ai.calculate_rations(body.inventory, body.people_count, body.days)
    except AssistantError:
        logger.exception("Error calculating rations")
        return server_error("Failed to calculate rations")


# === HEALTH ===

@app.get(f"{API}/health")
def health_check(db: Session = Depends(get_db)):
    """Basic health endpoint for monitoring"""
    try:
        db.execute(text("SELECT 1")).first()
        db_ok = True
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        db_ok = False

    return {"status": "ok", "db_ok": db_ok}
