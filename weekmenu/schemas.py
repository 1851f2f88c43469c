from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional

MealType = Literal["breakfast", "lunch", "dinner"]

class Allergens(BaseModel):
    suitable_for: Optional[List[str]] = None
    contains: Optional[List[str]] = None
    may_contain: Optional[List[str]] = None

class NutritionPer100g(BaseModel):
    energy_kcal: Optional[float] = None
    protein_g: Optional[float] = None
    carb_g: Optional[float] = None
    sugars_g: Optional[float] = None
    fat_g: Optional[float] = None
    sat_fat_g: Optional[float] = None
    salt_g: Optional[float] = None

class MenuItem(BaseModel):
    id: str = Field(description="Source recipe identifier, shared by every occurrence of the same dish")
    name: str
    dietary_labels: List[str] = Field(default_factory=list)
    ingredients: Optional[str] = None
    allergens: Optional[Allergens] = None
    nutrition_per_100g: Optional[NutritionPer100g] = None

class MenuCategory(BaseModel):
    name: str
    items: List[MenuItem]

class DayMenu(BaseModel):
    day: str = Field(description="Weekday name, e.g. Monday")
    categories: List[MenuCategory]

class Menu(BaseModel):
    identifier: str
    name: str
    type: MealType = "lunch"
    days: List[DayMenu] = Field(default_factory=list)

class MenuInfo(BaseModel):
    """A selectable menu variant discovered on the landing page."""
    identifier: str
    name: str

class ItemDetails(BaseModel):
    """Enrichment read from one item's detail overlay."""
    ingredients: str = ""
    allergens: Optional[Allergens] = None
    nutrition_per_100g: Optional[NutritionPer100g] = None

class StoredMenuData(BaseModel):
    menus: List[Menu]
    week_start_date: str = Field(description="Monday of the stored week, YYYY-MM-DD")
    date_map: Dict[str, str] = Field(description="Monday..Friday -> YYYY-MM-DD")
    stored_at: str = Field(description="ISO 8601 timestamp of the last write")

class MenuQueryResult(BaseModel):
    date: str
    day: str
    meal_type: MealType
    menu: List[MenuCategory]

class MenuItemWithContext(MenuItem):
    date: str
    day: str
    meal_type: MealType
    category: str

class WeekRange(BaseModel):
    start_date: str
    end_date: str
    week_key: str

class DateRange(BaseModel):
    start_date: str
    end_date: str

class AvailableDate(BaseModel):
    date: str
    meals: List[str]

class IngestResult(BaseModel):
    week_key: str
    start_date: str
    menu_count: int
    updated: bool
