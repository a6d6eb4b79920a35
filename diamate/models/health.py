"""
Health Data Models - glucose readings, meals, favorites and AI memory.

Field names are snake_case in Python and camelCase on the wire and in
device storage (the mobile client's format).
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GlucoseReading(CamelModel):
    """One CGM or manual glucose sample."""
    id: str = Field(default_factory=_new_id)
    mgdl: float
    timestamp: datetime
    source: Optional[str] = None  # manual, apple_health, health_connect, dexcom, ...
    context: Optional[Literal['fasting', 'before_meal', 'after_meal', 'bedtime', 'other']] = None
    note: Optional[str] = None
    device: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_is_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class MealItem(BaseModel):
    """One food item; keys follow the vision reply format."""
    name: str
    carbs: float = 0
    carbs_g: Optional[float] = None
    calories: Optional[float] = None
    protein_g: Optional[float] = None
    fat_g: Optional[float] = None
    fiber_g: Optional[float] = None
    glycemic_index: Optional[Literal['low', 'medium', 'high']] = Field(default=None, alias="glycemicIndex")
    portion: Optional[str] = None
    confidence: Optional[str] = None

    class Config:
        populate_by_name = True


class MealLog(CamelModel):
    """A logged meal."""
    id: str = Field(default_factory=_new_id)
    timestamp: datetime
    items: List[MealItem] = Field(default_factory=list)
    total_carbs: float = 0
    total_calories: Optional[float] = None
    total_protein: Optional[float] = None
    total_fat: Optional[float] = None
    total_fiber: Optional[float] = None
    glycemic_impact: Optional[Literal['low', 'medium', 'high']] = None
    photo_url: Optional[str] = None
    photo_used: Optional[bool] = None
    source: Optional[str] = None
    note: Optional[str] = None
    is_favorite: Optional[bool] = None
    favorite_name: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_is_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class FavoriteMeal(CamelModel):
    """Reusable meal template."""
    id: str = Field(default_factory=_new_id)
    name: str
    items: List[MealItem] = Field(default_factory=list)
    total_carbs: float = 0
    total_calories: Optional[float] = None
    total_protein: Optional[float] = None
    total_fat: Optional[float] = None
    created_at: datetime = Field(default_factory=_utcnow)
    usage_count: int = 0


class AIMessage(CamelModel):
    id: Optional[str] = None
    role: Literal['user', 'assistant']
    content: str
    timestamp: Optional[datetime] = None


class AIMemory(CamelModel):
    """Personalization context sent along with AI requests."""
    profile_facts: Dict[str, Any] = Field(default_factory=dict)
    memory_summary: str = ""
    conversation_history: List[AIMessage] = Field(default_factory=list)


class UserProfile(CamelModel):
    """Diabetes profile; every field is optional until onboarding completes."""
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    diabetes_type: Optional[Literal['T1', 'T2', 'GDM', 'Gestational', 'Other']] = None
    target_low: Optional[float] = None
    target_high: Optional[float] = None
    icr: Optional[float] = None  # grams of carbs covered by one unit
    isf: Optional[float] = None  # mg/dL drop per unit
    age: Optional[int] = None
    gender: Optional[Literal['male', 'female', 'other']] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    activity_level: Optional[Literal['sedentary', 'light', 'moderate', 'active']] = None
    active_insulin_hours: Optional[float] = None
    insulin_type: Optional[str] = None
    language: Optional[str] = None
    setup_complete: Optional[bool] = None
