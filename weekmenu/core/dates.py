"""
Week key arithmetic.

Every date that crosses a module boundary is a zero-padded ``YYYY-MM-DD``
string, so range checks are plain string comparisons.
"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo
from typing import Dict, Union

from weekmenu.schemas import WeekRange

UK_TZ = ZoneInfo("Europe/London")
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
DAY_NAMES = WEEKDAYS + ["Saturday", "Sunday"]
LOCATION_PLACEHOLDER = "london"

DateLike = Union[date, str]

def today_london() -> date:
    """Get today's date in the London timezone"""
    return datetime.now(UK_TZ).date()

def format_date(value: date) -> str:
    return value.isoformat()

def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string, raising ValueError on anything else"""
    return date.fromisoformat(value)

def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date(value)

def week_monday(value: DateLike) -> date:
    """
    Monday of the week a date belongs to.

    Saturday still belongs to the week that just ended, Sunday already belongs
    to the upcoming one: the site publishes next week's menu on Sunday.
    """
    d = _as_date(value)
    weekday = d.weekday()
    if weekday == 6:
        return d + timedelta(days=1)
    return d - timedelta(days=weekday)

def week_key_for(location: str, start_date: str, end_date: str) -> str:
    return f"{location}-{start_date}-{end_date}"

def week_range(value: DateLike, location: str = LOCATION_PLACEHOLDER) -> WeekRange:
    """Monday-Friday range (and its store key) for the given date"""
    monday = week_monday(value)
    start_date = format_date(monday)
    end_date = format_date(monday + timedelta(days=4))
    return WeekRange(
        start_date=start_date,
        end_date=end_date,
        week_key=week_key_for(location, start_date, end_date),
    )

def day_to_date_map(monday: DateLike) -> Dict[str, str]:
    start = _as_date(monday)
    return {name: format_date(start + timedelta(days=offset)) for offset, name in enumerate(WEEKDAYS)}

def day_name(value: DateLike) -> str:
    return DAY_NAMES[_as_date(value).weekday()]

def is_date_in_week(value: str, week: WeekRange) -> bool:
    return week.start_date <= value <= week.end_date

def current_week_range(today: DateLike, location: str = LOCATION_PLACEHOLDER) -> WeekRange:
    return week_range(today, location)

def next_week_range(today: DateLike, location: str = LOCATION_PLACEHOLDER) -> WeekRange:
    d = _as_date(today)
    weekday = d.weekday()
    days_until_monday = 1 if weekday == 6 else 7 - weekday
    return week_range(d + timedelta(days=days_until_monday), location)

def menu_week_range(today: DateLike, location: str = LOCATION_PLACEHOLDER) -> WeekRange:
    """
    Week a scheduled acquisition run should store its result under.

    The schedule fires ahead of the week it fetches, so a Saturday run targets
    the following week. Sunday is already mapped forward by week_monday().
    """
    d = _as_date(today)
    if d.weekday() == 5:
        return next_week_range(d, location)
    return week_range(d, location)
