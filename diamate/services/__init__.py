"""Services module - chat safety checks, prompt templates and vision reply parsing."""

from .safety import (
    is_crisis_message, crisis_response, mentions_dose, with_dose_disclaimer, last_user_message,
)
from .prompts import build_system_prompt, vision_prompt
from .vision_parser import VISION_DEFAULTS, VisionParseError, extract_json_object, parse_vision_reply
from .health_backup import parse_days, save_meals, save_readings, summarize_health, valid_readings

__all__ = [
    'is_crisis_message', 'crisis_response', 'mentions_dose', 'with_dose_disclaimer', 'last_user_message',
    'build_system_prompt', 'vision_prompt',
    'VISION_DEFAULTS', 'VisionParseError', 'extract_json_object', 'parse_vision_reply',
    'parse_days', 'save_meals', 'save_readings', 'summarize_health', 'valid_readings',
]
