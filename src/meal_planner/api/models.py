"""Pydantic models for API request bodies."""

from datetime import date

from pydantic import BaseModel, Field, model_validator


class ImportRequest(BaseModel):
    """Date range for a user-initiated import."""

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_range(self) -> "ImportRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ResolveUnmatchedRequest(BaseModel):
    """Recipe chosen for an unmatched event."""

    recipe_id: int = Field(gt=0)


class IgnoreUnmatchedRequest(BaseModel):
    """Optional note kept on an ignored event."""

    notes: str | None = None
