"""Translate PostgREST failures into persistence errors."""

from collections.abc import Iterator
from contextlib import contextmanager

from postgrest.exceptions import APIError

from meal_planner.domain.errors import DuplicateRecordError, PersistenceError

UNIQUE_VIOLATION = "23505"


@contextmanager
def translate_api_errors(action: str) -> Iterator[None]:
    """Re-raise PostgREST errors as domain persistence errors."""
    try:
        yield
    except APIError as exc:
        message = f"{action}: {exc.message or exc}"
        if exc.code == UNIQUE_VIOLATION:
            raise DuplicateRecordError(message) from exc
        raise PersistenceError(message) from exc
