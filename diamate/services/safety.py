"""
Chat safety checks: crisis short-circuit and dose disclaimers.
"""

import re
from typing import Iterable, Optional

CRISIS_PATTERNS = [
    re.compile(r"intihar|suicide|öldür|kill myself", re.IGNORECASE),
    re.compile(r"aşırı\s*doz|overdose", re.IGNORECASE),
]

CRISIS_MESSAGES = {
    "en": "🆘 If you are in crisis, please contact emergency services (112) or a mental health helpline immediately.",
    "tr": "🆘 Acil bir durumda lütfen 112'yi veya bir sağlık hattını arayın.",
}

# A number followed by an insulin unit word: "4 units", "6u", "10 ünite"
DOSE_PATTERN = re.compile(r"\b(\d+)\s*(ünite|unite|units?|u|iu)\b", re.IGNORECASE)

DOSE_DISCLAIMERS = {
    "en": "\n\n⚠️ *This is a calculated suggestion. Always verify with your healthcare provider.*",
    "tr": "\n\n⚠️ *Bu hesaplanmış bir öneridir. Her zaman sağlık uzmanınızla doğrulayın.*",
}


def _pick(messages: dict, lang: str) -> str:
    return messages["en"] if lang == "en" else messages["tr"]


def is_crisis_message(text: Optional[str]) -> bool:
    if not text:
        return False
    return any(pattern.search(text) for pattern in CRISIS_PATTERNS)


def crisis_response(lang: str = "tr") -> str:
    return _pick(CRISIS_MESSAGES, lang)


def mentions_dose(text: Optional[str]) -> bool:
    return bool(text) and DOSE_PATTERN.search(text) is not None


def with_dose_disclaimer(text: str, lang: str = "tr") -> str:
    """Append the medical disclaimer when the reply quotes an insulin quantity."""
    if mentions_dose(text):
        return text + _pick(DOSE_DISCLAIMERS, lang)
    return text


def last_user_message(messages: Iterable) -> Optional[str]:
    """
    Content of the most recent user message.

    Accepts ChatMessage models or plain dicts.
    """
    last = None
    for message in messages:
        role = message.get("role") if isinstance(message, dict) else getattr(message, "role", None)
        if role == "user":
            last = message.get("content") if isinstance(message, dict) else message.content
    return last
