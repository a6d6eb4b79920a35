"""
API Models - request and response bodies of the AI endpoints.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .health import CamelModel


class ChatMessage(BaseModel):
    """Chat message as sent by the client."""
    role: str  # user, assistant
    content: str


class ChatRequest(CamelModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
    lang: str = "tr"
    recent_context: Optional[Dict[str, Any]] = None


class ChatResponse(BaseModel):
    text: str


class VisionRequest(CamelModel):
    image_data_url: str = Field(..., min_length=1)
    lang: str = "tr"


class VisionResponse(BaseModel):
    """Meal analysis; missing fields in the model reply fall back to these defaults."""
    items: List[Dict[str, Any]] = Field(default_factory=list)
    total_carbs_g: Union[int, float] = 0
    total_calories: Union[int, float] = 0
    total_protein_g: Union[int, float] = 0
    total_fat_g: Union[int, float] = 0
    total_fiber_g: Union[int, float] = 0
    glycemicImpact: str = "medium"
    notes: str = ""
    confidence: str = "medium"


class HealthSyncRequest(CamelModel):
    """Backup upload; entries are validated one by one so a bad entry only skips itself."""
    glucose_readings: List[Any] = Field(default_factory=list)
    meal_logs: List[Any] = Field(default_factory=list)


class HealthSyncResponse(CamelModel):
    success: bool = True
    synced_readings: int = 0
    synced_meals: int = 0
    skipped: int = 0


class ErrorEnvelope(BaseModel):
    error: str
    code: Optional[str] = None
    message: Optional[str] = None
