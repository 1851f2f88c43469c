import pytest

from weekmenu.api import routes
from weekmenu.core import config
from weekmenu.core.dates import WEEKDAYS
from weekmenu.schemas import (
    Allergens,
    DayMenu,
    Menu,
    MenuCategory,
    MenuItem,
    NutritionPer100g,
)
from weekmenu.store.registry import StoreRegistry

WEEK_START = "2026-01-12"
WEEK_KEY = "london-2026-01-12-2026-01-16"

LUNCH_SOUPS = ["Leek and potato soup", "Tomato soup", "Lentil soup", "Pea and mint soup", "Carrot soup"]
LUNCH_MAINS = ["Chicken curry", "Fish pie", "Mushroom risotto", "Beef lasagne", "Vegetable tagine"]

def make_menus():
    """Breakfast + lunch for Monday-Friday; 'soup' appears in 10 item names, 'Vegan' on 13 items."""
    breakfast_days = []
    lunch_days = []
    for i, day in enumerate(WEEKDAYS):
        breakfast_days.append(DayMenu(day=day, categories=[
            MenuCategory(name="Hot Breakfast", items=[
                MenuItem(id="b100", name="Porridge with berries", dietary_labels=["Vegan"]),
                MenuItem(id=f"b2{i}", name="Bacon roll", dietary_labels=["Gluten"]),
            ]),
            MenuCategory(name="Light Bites", items=[
                MenuItem(id=f"b3{i}", name="Miso soup", dietary_labels=["Vegan", "Soya"]),
            ]),
        ]))
        lunch_days.append(DayMenu(day=day, categories=[
            MenuCategory(name="Soup", items=[
                MenuItem(
                    id=f"l1{i}",
                    name=LUNCH_SOUPS[i],
                    dietary_labels=["Vegan"] if i % 2 == 0 else ["Milk"],
                    ingredients=f"Vegetable stock, {LUNCH_SOUPS[i].lower()}",
                    allergens=Allergens(contains=["Celery"]),
                    nutrition_per_100g=NutritionPer100g(energy_kcal=45.0, salt_g=0.4),
                ),
            ]),
            MenuCategory(name="Mains", items=[
                MenuItem(
                    id=f"l2{i}",
                    name=LUNCH_MAINS[i],
                    dietary_labels=["Vegetarian", "Milk"] if i == 2 else [],
                ),
            ]),
        ]))
    return [
        Menu(identifier="m-breakfast", name="Breakfast Menu", type="breakfast", days=breakfast_days),
        Menu(identifier="m-lunch", name="Lunch Menu", type="lunch", days=lunch_days),
    ]

@pytest.fixture(autouse=True)
def setup_test_environment(tmp_path):
    """Point every store at a temporary directory"""
    original_store_dir = config.settings.STORE_DIR
    original_registry = routes._registry

    config.settings.STORE_DIR = str(tmp_path / "weeks")
    routes._registry = None

    yield

    config.settings.STORE_DIR = original_store_dir
    routes._registry = original_registry

@pytest.fixture
def menus():
    return make_menus()

@pytest.fixture
def registry(tmp_path):
    return StoreRegistry(str(tmp_path / "registry"))

@pytest.fixture
def store(registry):
    return registry.get(WEEK_KEY)

@pytest.fixture
def filled_store(store, menus):
    store.set_menu_with_dates(menus, WEEK_START)
    return store
