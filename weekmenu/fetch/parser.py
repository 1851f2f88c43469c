"""
Pure parsing of rendered menu page snapshots.

Everything here takes HTML captured from the live page and returns schema
objects, so it can be exercised against saved fixtures without a browser.
"""

import re
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from weekmenu.schemas import (
    Allergens,
    DayMenu,
    ItemDetails,
    MealType,
    MenuCategory,
    MenuInfo,
    MenuItem,
    NutritionPer100g,
)

MENU_OPTION_SELECTOR = ".k10-menu-selector__options-li"
DAY_SELECTOR = ".k10-course.k10-course_level_1"
CATEGORY_SELECTOR = ".k10-course.k10-course_level_2"
COURSE_NAME_SELECTOR = ".k10-course__name"
ITEM_SELECTOR = ".k10-recipe.k10-recipe_menu-item"
ITEM_NAME_SELECTOR = ".k10-recipe__name"
MODAL_SELECTOR = ".k10-recipe-modal"

# Label ids used by the source's data-labels attribute
DIETARY_LABEL_MAP: Dict[str, str] = {
    "52": "Vegan",
    "50": "Vegetarian",
    "23": "Celery",
    "77": "Crustaceans",
    "22": "Eggs",
    "21": "Fish",
    "24": "Gluten",
    "25": "Lupin",
    "26": "Milk",
    "27": "Molluscs",
    "28": "Mustard",
    "29": "Nuts",
    "30": "Peanuts",
    "31": "Sesame",
    "32": "Soya",
    "33": "Sulphites",
}

NUTRIENT_FIELDS: Dict[str, str] = {
    "Energy (kCal)": "energy_kcal",
    "Protein (g)": "protein_g",
    "Carb (g)": "carb_g",
    "of which Sugars (g)": "sugars_g",
    "Fat (g)": "fat_g",
    "Sat Fat (g)": "sat_fat_g",
    "Salt (g)": "salt_g",
}

ALLERGEN_FIELDS: Dict[str, str] = {
    "suitable_for": ".k10-recipe-modal__allergens_suitable .k10-recipe-modal__allergens_value",
    "contains": ".k10-recipe-modal__allergens_contains .k10-recipe-modal__allergens_value",
    "may_contain": ".k10-recipe-modal__allergens_may .k10-recipe-modal__allergens_value",
}

_LEADING_NUMBER = re.compile(r"^\s*([-+]?\d*\.?\d+)")

def _text(element) -> str:
    return element.get_text(" ", strip=True) if element is not None else ""

def map_dietary_labels(raw: Optional[str]) -> List[str]:
    """
    Map a comma separated list of label ids to label names.
    Unknown ids are dropped: '52, 24,99' -> ['Vegan', 'Gluten']
    """
    if not raw or not raw.strip():
        return []
    labels = []
    for label_id in raw.split(","):
        label = DIETARY_LABEL_MAP.get(label_id.strip())
        if label:
            labels.append(label)
    return labels

def classify_menu_type(name: str) -> MealType:
    """Meal type from the raw variant name; anything unrecognised is lunch."""
    lowered = name.lower()
    if "breakfast" in lowered:
        return "breakfast"
    if "dinner" in lowered:
        return "dinner"
    return "lunch"

def parse_menu_options(html: str) -> List[MenuInfo]:
    """
    Selectable menu variants on the landing page.

    The selector list may be rendered more than once; the first element for
    each identifier wins and elements without one are ignored.
    """
    soup = BeautifulSoup(html, "html.parser")
    options: Dict[str, MenuInfo] = {}
    for element in soup.select(MENU_OPTION_SELECTOR):
        identifier = (element.get("data-menu-identifier") or "").strip()
        if not identifier or identifier in options:
            continue
        options[identifier] = MenuInfo(identifier=identifier, name=_text(element))
    return list(options.values())

def _variant_roots(soup: BeautifulSoup, menu_identifier: Optional[str]):
    if not menu_identifier:
        return [soup]
    containers = [
        element
        for element in soup.find_all(attrs={"data-menu-identifier": menu_identifier})
        if "k10-menu-selector__options-li" not in (element.get("class") or [])
    ]
    return containers or [soup]

def _parse_item(element) -> MenuItem:
    modal = element.select_one(MODAL_SELECTOR)
    return MenuItem(
        id=(modal.get("data-recipe-id") or "").strip() if modal is not None else "",
        name=_text(element.select_one(ITEM_NAME_SELECTOR)),
        dietary_labels=map_dietary_labels(element.get("data-labels")),
    )

def parse_menu_structure(html: str, menu_identifier: Optional[str] = None) -> List[DayMenu]:
    """
    Day -> category -> item tree for the currently selected menu.

    Categories without items and days without categories are dropped. Day
    sections can be rendered twice; the first one for each name is kept.
    When the page wraps each variant in a container tagged with its
    identifier, only that container is read.
    """
    soup = BeautifulSoup(html, "html.parser")
    days: Dict[str, DayMenu] = {}

    for root in _variant_roots(soup, menu_identifier):
        for day_element in root.select(DAY_SELECTOR):
            day = _text(day_element.select_one(COURSE_NAME_SELECTOR))
            if not day:
                continue

            categories = []
            for category_element in day_element.select(CATEGORY_SELECTOR):
                category_name = _text(category_element.select_one(COURSE_NAME_SELECTOR))
                if not category_name:
                    continue
                items = [_parse_item(item) for item in category_element.select(ITEM_SELECTOR)]
                if items:
                    categories.append(MenuCategory(name=category_name, items=items))

            if categories and day not in days:
                days[day] = DayMenu(day=day, categories=categories)

    return list(days.values())

def _allergen_values(modal, selector: str) -> Optional[List[str]]:
    text = _text(modal.select_one(selector))
    if not text:
        return None
    values = [value.strip() for value in text.split(",") if value.strip()]
    return values or None

def _nutrition(modal) -> Optional[NutritionPer100g]:
    values = {}
    for row in modal.select(".k10-recipe-modal__nutrients-table tr[data-nutr-name]"):
        field = NUTRIENT_FIELDS.get(row.get("data-nutr-name", ""))
        if not field:
            continue
        match = _LEADING_NUMBER.match(_text(row.select_one(".k10-recipe-modal__td_val")))
        if match:
            values[field] = float(match.group(1))
    return NutritionPer100g(**values) if values else None

def parse_item_details(html: str, recipe_id: Optional[str] = None) -> Optional[ItemDetails]:
    """Ingredients, allergens and nutrition from a detail overlay, None if the overlay is missing."""
    soup = BeautifulSoup(html, "html.parser")
    modal = None
    for candidate in soup.select(MODAL_SELECTOR):
        if not recipe_id or candidate.get("data-recipe-id") == recipe_id:
            modal = candidate
            break
    if modal is None:
        return None

    allergen_values = {field: _allergen_values(modal, sel) for field, sel in ALLERGEN_FIELDS.items()}
    allergens = None
    if any(allergen_values.values()):
        allergens = Allergens(**{k: v for k, v in allergen_values.items() if v})

    return ItemDetails(
        ingredients=_text(modal.select_one(".k10-w-recipe__ingredient")),
        allergens=allergens,
        nutrition_per_100g=_nutrition(modal),
    )

def collect_item_ids(days: List[DayMenu]) -> List[str]:
    """Distinct non-empty item ids in first-seen order."""
    seen: Dict[str, None] = {}
    for day in days:
        for category in day.categories:
            for item in category.items:
                if item.id:
                    seen.setdefault(item.id, None)
    return list(seen)

def find_item_name(days: List[DayMenu], item_id: str) -> str:
    for day in days:
        for category in day.categories:
            for item in category.items:
                if item.id == item_id:
                    return item.name
    return ""

def apply_item_details(days: List[DayMenu], details: Dict[str, ItemDetails]) -> List[DayMenu]:
    """Copy collected details onto every occurrence of each item id."""
    for day in days:
        for category in day.categories:
            for item in category.items:
                found = details.get(item.id) if item.id else None
                if found is None:
                    continue
                item.ingredients = found.ingredients
                item.allergens = found.allergens
                item.nutrition_per_100g = found.nutrition_per_100g
    return days
