"""
Query engine over a week's secondary index.

The index only carries the columns needed to filter rows and to locate a
record again; full item payloads are always read back from the canonical
document.
"""

from typing import Dict, Iterator, List, Optional, Tuple

from weekmenu.schemas import (
    DayMenu,
    Menu,
    MenuCategory,
    MenuItem,
    MenuItemWithContext,
    StoredMenuData,
)

IndexRow = Tuple[str, str, str, int, int]
ItemRow = Tuple[str, str, str, str, str, str]

def date_for_day(date_map: Dict[str, str], day: str) -> Optional[str]:
    return date_map.get(day) or date_map.get(day.strip().capitalize())

def day_for_date(date_map: Dict[str, str], date: str) -> str:
    for day, mapped in date_map.items():
        if mapped == date:
            return day
    return ""

def _days_on(menu: Menu, date_map: Dict[str, str], date: str) -> Iterator[DayMenu]:
    for day in menu.days:
        if date_for_day(date_map, day.day) == date:
            yield day

def index_rows(data: StoredMenuData) -> Tuple[List[IndexRow], List[ItemRow]]:
    """
    Rows of menu_index and menu_items derived from a canonical document.

    Days that do not map onto the stored week are left out. Items without an
    id cannot be located again and get no menu_items row; they still count
    towards items_count.
    """
    day_rows: List[IndexRow] = []
    item_rows: List[ItemRow] = []
    for menu in data.menus:
        for day in menu.days:
            date = date_for_day(data.date_map, day.day)
            if not date:
                continue
            total_items = 0
            for category in day.categories:
                for item in category.items:
                    total_items += 1
                    if not item.id:
                        continue
                    item_rows.append((
                        item.id,
                        date,
                        menu.type,
                        category.name,
                        item.name,
                        ",".join(item.dietary_labels),
                    ))
            day_rows.append((date, day.day, menu.type, len(day.categories), total_items))
    return day_rows, item_rows

def build_day_query(date: str, meal_type: Optional[str] = None) -> Tuple[str, list]:
    sql = "SELECT date, day_name, meal_type FROM menu_index WHERE date = ?"
    params: list = [date]
    if meal_type:
        sql += " AND meal_type = ?"
        params.append(meal_type)
    sql += " ORDER BY rowid"
    return sql, params

def build_search_query(
    query: str = "",
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    meal_type: Optional[str] = None,
    dietary_label: Optional[str] = None,
) -> Tuple[str, list]:
    """
    Conjunctive filter over menu_items.

    Name and dietary label matching is case-sensitive containment (instr),
    dates are inclusive string bounds.
    """
    sql = """
        SELECT DISTINCT id, date, meal_type, category, name, dietary_labels
        FROM menu_items
        WHERE 1=1
    """
    params: list = []

    if query:
        sql += " AND instr(name, ?) > 0"
        params.append(query)

    if dietary_label:
        sql += " AND instr(dietary_labels, ?) > 0"
        params.append(dietary_label)

    if start_date:
        sql += " AND date >= ?"
        params.append(start_date)

    if end_date:
        sql += " AND date <= ?"
        params.append(end_date)

    if meal_type:
        sql += " AND meal_type = ?"
        params.append(meal_type)

    sql += " ORDER BY date, meal_type, rowid"
    return sql, params

def resolve_day_categories(data: StoredMenuData, meal_type: str, date: str) -> Optional[List[MenuCategory]]:
    for menu in data.menus:
        if menu.type != meal_type:
            continue
        for day in _days_on(menu, data.date_map, date):
            return day.categories
    return None

def _find_item(day: DayMenu, item_id: str, category_name: str) -> Optional[MenuItem]:
    fallback = None
    for category in day.categories:
        for item in category.items:
            if item.id != item_id:
                continue
            if category.name == category_name:
                return item
            if fallback is None:
                fallback = item
    return fallback

def resolve_item(data: StoredMenuData, row) -> Optional[MenuItemWithContext]:
    """Full item record for one menu_items row, annotated with where it was served."""
    item_id, date, meal_type, category = row["id"], row["date"], row["meal_type"], row["category"]
    for menu in data.menus:
        if menu.type != meal_type:
            continue
        for day in _days_on(menu, data.date_map, date):
            item = _find_item(day, item_id, category)
            if item is not None:
                return MenuItemWithContext(
                    **item.model_dump(),
                    date=date,
                    day=day_for_date(data.date_map, date),
                    meal_type=meal_type,
                    category=category,
                )
    return None
