"""Request/response models for the habit mentor API.

Field names on the wire are the camelCase names used in the log slot.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class _SlotFields(BaseModel):
    """Shared config: camelCase aliases, unknown fields rejected, no nulls."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    @model_validator(mode="after")
    def _no_explicit_nulls(self):
        nulls = [name for name in self.model_fields_set if getattr(self, name) is None]
        if nulls:
            raise ValueError(f"fields may not be null: {sorted(nulls)}")
        return self


class DailyRecord(_SlotFields):
    """A complete daily record as stored in the log slot.

    Strict: values must already have the right JSON type ("3" is not a mood).
    """

    model_config = ConfigDict(strict=True)

    date: str = Field(..., pattern=DATE_PATTERN)
    habits: dict[str, bool]
    mood: int = Field(..., ge=1, le=5)
    energy: int = Field(..., ge=1, le=5)
    bed_time: str = Field(..., pattern=TIME_PATTERN)
    wake_time: str = Field(..., pattern=TIME_PATTERN)
    sleep_quality: int = Field(..., ge=1, le=5)
    instagram_minutes: int = Field(..., ge=0)
    study_minutes: int = Field(..., ge=0)
    study_sessions: int = Field(..., ge=0)
    daily_goal: str
    daily_goal_completed: bool
    reflection: str
    ai_mentor_insight: Optional[str] = None
    water_intake: int = Field(..., ge=0)

    def to_record(self) -> dict:
        """Return the slot dict; ``aiMentorInsight`` only when it was given."""
        return self.model_dump(exclude_unset=True, by_alias=True)


class DailyRecordUpdate(_SlotFields):
    """Partial daily record.  Only fields the client sends are applied."""

    habits: Optional[dict[str, bool]] = None
    mood: Optional[int] = Field(None, ge=1, le=5)
    energy: Optional[int] = Field(None, ge=1, le=5)
    bed_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    wake_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    sleep_quality: Optional[int] = Field(None, ge=1, le=5)
    instagram_minutes: Optional[int] = Field(None, ge=0)
    study_minutes: Optional[int] = Field(None, ge=0)
    study_sessions: Optional[int] = Field(None, ge=0)
    daily_goal: Optional[str] = None
    daily_goal_completed: Optional[bool] = None
    reflection: Optional[str] = None
    ai_mentor_insight: Optional[str] = None
    water_intake: Optional[int] = Field(None, ge=0)

    def to_fields(self) -> dict:
        """Return only the fields that were sent, keyed by slot field name."""
        return self.model_dump(exclude_unset=True, by_alias=True)


class InsightSave(BaseModel):
    insight: str = Field(..., min_length=1)


class RecordResponse(BaseModel):
    record: dict
    saved: bool


class InsightResponse(BaseModel):
    date: str
    insight: str
    reason: str
    error: Optional[str] = None
    records_used: int
