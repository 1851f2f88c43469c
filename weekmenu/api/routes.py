from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from weekmenu.core.config import settings
from weekmenu.core.dates import parse_date, today_london
from weekmenu.fetch.base import ExtractionError
from weekmenu.schemas import (
    AvailableDate,
    IngestResult,
    MenuItemWithContext,
    MenuQueryResult,
    StoredMenuData,
)
from weekmenu.services.ingest import ingest_menus
from weekmenu.store.registry import StoreRegistry

MEAL_TYPES = ("breakfast", "lunch", "dinner")

router = APIRouter()

_registry: Optional[StoreRegistry] = None

def get_registry() -> StoreRegistry:
    global _registry
    if _registry is None:
        _registry = StoreRegistry()
    return _registry

class SearchResponse(BaseModel):
    items: List[MenuItemWithContext]
    count: int

class IngestRequest(BaseModel):
    url: Optional[str] = None
    location: Optional[str] = None

def _check_meal(meal: Optional[str]):
    if meal and meal not in MEAL_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid meal type, expected one of: {', '.join(MEAL_TYPES)}"
        )

def _check_date(value: str, field: str = "date"):
    try:
        parse_date(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field} must be in YYYY-MM-DD format"
        )

def _store(registry: StoreRegistry, location: str, day: str):
    try:
        return registry.find_for(location, day)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

def _week_store(registry: StoreRegistry, week_key: str):
    try:
        return registry.find(week_key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/menu/query/{location}/{date}", response_model=List[MenuQueryResult])
async def query_menu_by_date(
    location: str,
    date: str,
    meal: Optional[str] = None,
    registry: StoreRegistry = Depends(get_registry),
):
    """
    Get the menu for a location and date.

    Sample usage: /menu/query/london/2026-01-14?meal=lunch
    """
    _check_meal(meal)
    _check_date(date)

    store = _store(registry, location, date)
    results = store.get_menu_by_date(date, meal) if store is not None else []
    if not results:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No menu found for {location} on {date}"
        )
    return results

@router.get("/menu/search/{location}", response_model=SearchResponse)
async def search_menu(
    location: str,
    q: str = "",
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    meal: Optional[str] = None,
    dietary: Optional[str] = None,
    registry: StoreRegistry = Depends(get_registry),
):
    """
    Search one week's menu items by name and/or dietary label.

    The week is the one containing startDate (today when omitted); missing
    bounds default to the stored week's range.
    """
    _check_meal(meal)
    for field, value in (("startDate", start_date), ("endDate", end_date)):
        if value:
            _check_date(value, field)

    store = _store(registry, location, start_date or today_london().isoformat())
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No matching menu items found"
        )

    if not start_date or not end_date:
        stored_range = store.get_stored_week_range()
        if stored_range:
            start_date = start_date or stored_range.start_date
            end_date = end_date or stored_range.end_date

    items = store.search_menu_items(
        q,
        start_date=start_date,
        end_date=end_date,
        meal_type=meal,
        dietary_label=dietary or None,
    )
    if not items:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No matching menu items found"
        )
    return SearchResponse(items=items, count=len(items))

@router.get("/menu/{week_key}", response_model=StoredMenuData)
async def get_week_menu(week_key: str, registry: StoreRegistry = Depends(get_registry)):
    """Full stored document for a week key, e.g. /menu/london-2026-01-12-2026-01-16"""
    store = _week_store(registry, week_key)
    data = store.get_stored_data() if store is not None else None
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No menu stored for {week_key}"
        )
    return data

@router.get("/menu/{week_key}/dates", response_model=List[AvailableDate])
async def get_week_dates(week_key: str, registry: StoreRegistry = Depends(get_registry)):
    store = _week_store(registry, week_key)
    dates = store.get_available_dates() if store is not None else []
    if not dates:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No menu stored for {week_key}"
        )
    return dates

@router.post("/menu/{week_key}/rebuild")
async def rebuild_week_index(week_key: str, registry: StoreRegistry = Depends(get_registry)):
    """Rebuild the search index of a week from its stored document"""
    store = _week_store(registry, week_key)
    if store is None or not store.rebuild_index():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No menu stored for {week_key}"
        )
    return {"message": f"Index rebuilt for {week_key}"}

@router.post("/ingest", response_model=IngestResult)
async def ingest(request: IngestRequest, registry: StoreRegistry = Depends(get_registry)):
    """Fetch the source menu now and store it under the upcoming menu week"""
    url = request.url or settings.MENU_SOURCE_URL
    if not url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="URL is required (set MENU_SOURCE_URL or pass url)"
        )

    if not url.startswith(("http://", "https://")):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="URL must start with http:// or https://"
        )

    try:
        return await ingest_menus(url, registry, request.location)
    except ExtractionError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Menu extraction failed: {str(e)}"
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "Weekly Menu Service"}
