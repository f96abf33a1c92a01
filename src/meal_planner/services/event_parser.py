"""Parse calendar event titles into meal events."""

import re
from dataclasses import dataclass
from datetime import date

from meal_planner.domain.meals import MealEvent, MealType

EMPHASIS_MARKER = "*"

_MEAL_PATTERN = re.compile(r"^(\*\s*)?(Breakfast|Lunch|Dinner):\s*(.+)$", re.IGNORECASE)
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_PUNCTUATION = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class ParsedTitle:
    """Structured pieces of a meal event title."""

    meal_type: MealType
    recipe_name: str
    emphasis: bool


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a meal event before persistence."""

    valid: bool
    errors: list[str]


def parse_event_title(title: object) -> ParsedTitle | None:
    """Parse ``[*] MealType: Recipe`` titles, returning None for anything else."""
    if not isinstance(title, str):
        return None
    match = _MEAL_PATTERN.match(title.strip())
    if match is None:
        return None
    marker, label, recipe_name = match.groups()
    meal_type = MealType.from_label(label)
    if meal_type is None:
        return None
    return ParsedTitle(
        meal_type=meal_type,
        recipe_name=recipe_name.strip(),
        emphasis=marker is not None,
    )


def is_meal_event(title: object) -> bool:
    """Return True when the title follows the meal event pattern."""
    return parse_event_title(title) is not None


def format_event_title(meal_type: MealType, recipe_title: str, emphasis: bool) -> str:
    """Build the remote event title for a meal."""
    prefix = f"{EMPHASIS_MARKER} " if emphasis else ""
    return f"{prefix}{meal_type.value}: {recipe_title}"


def extract_meal_events(events: list[dict[str, object]]) -> list[MealEvent]:
    """Turn raw remote calendar events into meal events, skipping non-meals."""
    meal_events: list[MealEvent] = []
    for event in events:
        summary = event.get("summary")
        parsed = parse_event_title(summary)
        if parsed is None:
            continue
        meal_events.append(
            MealEvent(
                external_event_id=str(event.get("id") or ""),
                meal_type=parsed.meal_type,
                recipe_name=parsed.recipe_name,
                date=_event_date(event.get("start")),
                emphasis=parsed.emphasis,
                original_title=str(summary),
                description=_optional_str(event.get("description")),
                html_link=_optional_str(event.get("htmlLink")),
                updated=_optional_str(event.get("updated")),
            )
        )
    return meal_events


def validate_meal_event(event: MealEvent) -> ValidationResult:
    """Check a meal event before anything is written for it."""
    errors: list[str] = []
    if not isinstance(event.meal_type, MealType):
        errors.append("Invalid meal type. Must be Lunch, Dinner, or Breakfast")
    if not event.recipe_name or not event.recipe_name.strip():
        errors.append("Recipe name is required")
    if not event.date:
        errors.append("Date is required")
    elif not _DATE_PATTERN.match(event.date):
        errors.append("Invalid date format. Expected YYYY-MM-DD")
    else:
        try:
            date.fromisoformat(event.date)
        except ValueError:
            errors.append("Invalid calendar date")
    if not event.external_event_id:
        errors.append("Event id is required")
    return ValidationResult(valid=not errors, errors=errors)


def normalize_for_matching(name: object) -> str:
    """Lower-case, strip punctuation and collapse whitespace for comparisons."""
    if not isinstance(name, str):
        return ""
    cleaned = _PUNCTUATION.sub("", name.lower())
    return " ".join(cleaned.split())


def _event_date(start: object) -> str:
    if not isinstance(start, dict):
        return ""
    all_day = start.get("date")
    if isinstance(all_day, str) and all_day:
        return all_day
    timed = start.get("dateTime")
    if isinstance(timed, str) and timed:
        return timed.split("T", 1)[0]
    return ""


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)
