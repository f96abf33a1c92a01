"""Errors raised by the sync core."""


class MealSyncError(Exception):
    """Base class for sync-related failures."""


class CalendarApiError(MealSyncError):
    """Remote calendar request failed (network, quota, bad response)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MissingCredentialsError(CalendarApiError):
    """No usable calendar access token is available."""


class PersistenceError(MealSyncError):
    """The local store rejected a read or write."""


class DuplicateRecordError(PersistenceError):
    """A unique constraint rejected an insert."""


class RecipeNotFoundError(MealSyncError):
    """Referenced recipe does not exist in the catalog."""


class UnmatchedEventNotFoundError(MealSyncError):
    """Unmatched event id does not exist."""


class UnmatchedEventClosedError(MealSyncError):
    """Unmatched event is already matched or ignored."""


class SlotOccupiedError(MealSyncError):
    """A meal already occupies the requested (date, meal type) slot."""
