"""Recurrence evaluation for quest templates.

Pure functions only: given a template and a calendar day, decide whether the
template's fixed schedule fires on that day. Quota handling (frequency) and
open-quest checks live in the generator.
"""

from datetime import date

from src.domain.quest import QuestType
from src.domain.template import QuestTemplate, ScheduleMode


WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def sunday_weekday(d: date) -> int:
    """Return the weekday index with 0=Sunday..6=Saturday."""
    return (d.weekday() + 1) % 7


def week_of_month(d: date) -> int:
    """Return the 7-day block of the month the day falls in (1..5).

    Days 1-7 are week 1, 8-14 week 2, and so on; days 29-31 are week 5.
    """
    return (d.day - 1) // 7 + 1


def _weekday_ok(template: QuestTemplate, on: date) -> bool:
    return not template.days_of_week or sunday_weekday(on) in template.days_of_week


def _week_ok(template: QuestTemplate, on: date) -> bool:
    return not template.weeks_of_month or week_of_month(on) in template.weeks_of_month


def _matches_monthly(template: QuestTemplate, on: date) -> bool:
    if template.dates_of_month:
        return on.day in template.dates_of_month
    if template.weeks_of_month:
        return week_of_month(on) in template.weeks_of_month and _weekday_ok(template, on)
    return False


def _matches_yearly(template: QuestTemplate, on: date) -> bool:
    if template.month_of_year is None or template.month_of_year != on.month:
        return False
    return _week_ok(template, on) and _weekday_ok(template, on)


def _matches_project(template: QuestTemplate, on: date) -> bool:
    if template.start_date is not None and on < template.start_date:
        return False
    if template.end_date is not None and on > template.end_date:
        return False
    return _weekday_ok(template, on)


def matches(template: QuestTemplate, on: date) -> bool:
    """Return True when the template's schedule fires on the given day.

    Args:
        template: Template whose constraint lists have already been validated
        on: Local calendar day to evaluate

    Returns:
        True if a quest should be generated for this day (before quota and
        open-quest checks), False otherwise. Pool and manual templates never match.
    """
    quest_type = template.quest_type

    if quest_type == QuestType.DAILY:
        return True
    if quest_type == QuestType.WEEKLY:
        return bool(template.days_of_week) and sunday_weekday(on) in template.days_of_week
    if quest_type == QuestType.MONTHLY:
        return _matches_monthly(template, on)
    if quest_type == QuestType.YEARLY:
        return _matches_yearly(template, on)
    if quest_type == QuestType.PROJECT:
        return _matches_project(template, on)
    return False


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:  # noqa: PLR2004
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _day_names(days: list[int]) -> str:
    return ", ".join(WEEKDAY_NAMES[d] for d in days if 0 <= d <= 6)  # noqa: PLR2004


def describe_schedule(template: QuestTemplate) -> str:
    """Convert a template's recurrence rule to human-readable text.

    Examples:
        "daily", "every Mon, Wed", "monthly on the 1st, 15th",
        "2nd week on Tue", "yearly in Dec", "3x per week"
    """
    quest_type = template.quest_type
    quota = f"{template.frequency}x " if template.frequency > 1 else ""

    if template.schedule_mode == ScheduleMode.MANUAL:
        return "on demand"

    if template.schedule_mode == ScheduleMode.POOL:
        period = "week" if quest_type == QuestType.WEEKLY else "month"
        return f"{template.frequency}x per {period}"

    if quest_type == QuestType.DAILY:
        return f"{quota}daily"

    if quest_type == QuestType.WEEKLY:
        return f"every {_day_names(template.days_of_week)}"

    if quest_type == QuestType.MONTHLY:
        if template.dates_of_month:
            dates = ", ".join(_ordinal(d) for d in template.dates_of_month)
            return f"monthly on the {dates}"
        weeks = ", ".join(_ordinal(w) for w in template.weeks_of_month)
        if template.days_of_week:
            return f"{weeks} week on {_day_names(template.days_of_week)}"
        return f"every day of the {weeks} week"

    if quest_type == QuestType.YEARLY:
        if template.month_of_year is None or not 1 <= template.month_of_year <= 12:  # noqa: PLR2004
            return "yearly (no month set)"
        text = f"yearly in {MONTH_NAMES[template.month_of_year - 1]}"
        if template.weeks_of_month:
            text += f", {', '.join(_ordinal(w) for w in template.weeks_of_month)} week"
        if template.days_of_week:
            text += f" on {_day_names(template.days_of_week)}"
        return text

    if quest_type == QuestType.PROJECT:
        start = template.start_date.isoformat() if template.start_date else "..."
        end = template.end_date.isoformat() if template.end_date else "..."
        text = f"project {start} to {end}"
        if template.days_of_week:
            text += f" on {_day_names(template.days_of_week)}"
        return text

    return quest_type.value
