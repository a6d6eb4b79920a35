"""
Parsing of the vision model's meal analysis reply.

The model is asked for JSON only, but replies often wrap it in prose or
markdown fences, so the first balanced object is cut out of the text.
"""

import copy
import json
from typing import Any, Dict, Optional

VISION_DEFAULTS: Dict[str, Any] = {
    "items": [],
    "total_carbs_g": 0,
    "total_calories": 0,
    "total_protein_g": 0,
    "total_fat_g": 0,
    "total_fiber_g": 0,
    "glycemicImpact": "medium",
    "notes": "",
    "confidence": "medium",
}


class VisionParseError(ValueError):
    """The reply contains no usable JSON object."""


def extract_json_object(text: Optional[str]) -> Optional[str]:
    """
    Return the first balanced ``{...}`` substring of ``text``.

    Braces inside JSON strings (including escaped quotes) are ignored.
    Returns None when no object opens, or the first one never closes.
    """
    if not text:
        return None

    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def parse_vision_reply(text: Optional[str]) -> Dict[str, Any]:
    """
    Parse a vision reply into the meal analysis payload.

    Every expected field is present in the result; missing or empty values
    take the defaults from VISION_DEFAULTS.

    Raises:
        VisionParseError: if no JSON object can be extracted and decoded
    """
    raw = extract_json_object(text)
    if raw is None:
        raise VisionParseError("No JSON object in vision reply")

    try:
        result = json.loads(raw)
    except json.JSONDecodeError as e:
        raise VisionParseError(f"Invalid JSON in vision reply: {e}") from e

    if not isinstance(result, dict):
        raise VisionParseError("Vision reply is not a JSON object")

    parsed = copy.deepcopy(VISION_DEFAULTS)
    for key in parsed:
        if result.get(key):
            parsed[key] = result[key]
    return parsed
