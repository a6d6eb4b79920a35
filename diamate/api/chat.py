"""
Chat API endpoint - quota-gated diabetes assistant conversation.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..core.errors import APIError, ErrorKind, server_error_boundary
from ..db import get_db
from ..llm import LLMMessage, LLMProvider, get_chat_provider
from ..models import ChatRequest, ChatResponse
from ..quota import CHAT, EntitlementGate, client_ip, run_gated_operation
from ..services import (
    build_system_prompt, crisis_response, is_crisis_message, last_user_message, with_dose_disclaimer,
)
from .deps import parse_body, read_json, require_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ai"])


@router.post("/ai-chat", response_model=ChatResponse)
@server_error_boundary
async def ai_chat(
    request: Request,
    db: Session = Depends(get_db),
    provider: Optional[LLMProvider] = Depends(get_chat_provider),
):
    """
    Answer a chat conversation.

    Crisis messages are answered with a static help text before identity or
    quota are looked at; everything else runs through the entitlement gate.

    Returns:
        ChatResponse: ``{"text": ...}``
    """
    if provider is None:
        raise APIError(ErrorKind.CONFIG_ERROR, "AI service not configured")

    token = require_token(request)
    body = await read_json(request)
    chat = parse_body(ChatRequest, body, "Messages required")

    if is_crisis_message(last_user_message(chat.messages)):
        logger.warning("Crisis pattern matched, returning emergency resources")
        return ChatResponse(text=crisis_response(chat.lang))

    async def ask_model(admitted) -> str:
        system_prompt = build_system_prompt(chat.lang, chat.recent_context)
        window = chat.messages[-settings.chat_history_window:]
        messages = [LLMMessage.text("system", system_prompt)]
        messages.extend(LLMMessage.text(m.role, m.content) for m in window)
        reply = await provider.chat_completion(messages, temperature=0.7, max_tokens=1024)
        return reply.content

    text = await run_gated_operation(
        EntitlementGate(db), CHAT, token, chat.lang, client_ip(request), ask_model,
    )
    return ChatResponse(text=with_dose_disclaimer(text, chat.lang))
