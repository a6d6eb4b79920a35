"""
Vision API endpoint - quota-gated meal photo analysis.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..config import settings
from ..core.errors import APIError, ErrorKind, server_error_boundary
from ..db import get_db
from ..llm import LLMMessage, LLMProvider, get_vision_provider
from ..models import VisionRequest, VisionResponse
from ..quota import VISION, EntitlementGate, client_ip, run_gated_operation
from ..services import VisionParseError, parse_vision_reply, vision_prompt
from .deps import parse_body, read_json, require_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ai"])

PARSE_ERROR_MESSAGE = "Could not parse response"


@router.post("/ai-vision", response_model=VisionResponse)
@server_error_boundary
async def ai_vision(
    request: Request,
    db: Session = Depends(get_db),
    provider: Optional[LLMProvider] = Depends(get_vision_provider),
):
    """
    Estimate carbs and macros of a meal photo.

    The image travels as a data URL and is sent to the model at low detail.
    Usage is recorded only once the reply parsed.
    """
    if provider is None:
        raise APIError(ErrorKind.CONFIG_ERROR, "Vision service not configured")

    token = require_token(request)
    body = await read_json(request)
    vision = parse_body(VisionRequest, body, "Image required")

    if len(vision.image_data_url) > settings.max_image_data_url_chars:
        raise APIError(ErrorKind.IMAGE_TOO_LARGE, "Image must be under 1.5MB")

    async def analyze(admitted) -> VisionResponse:
        message = LLMMessage.multimodal(
            "user", vision_prompt(vision.lang), [vision.image_data_url], detail="low",
        )
        reply = await provider.chat_completion([message], max_tokens=500, omit_temperature=True)
        try:
            return VisionResponse.model_validate(parse_vision_reply(reply.content))
        except (VisionParseError, ValidationError) as e:
            logger.warning(
                f"Vision reply not parseable: {e}",
                extra={"extra_fields": {"user_id": admitted.identity.user_id}}
            )
            raise APIError(ErrorKind.PARSE_ERROR, PARSE_ERROR_MESSAGE)

    return await run_gated_operation(
        EntitlementGate(db), VISION, token, vision.lang, client_ip(request), analyze,
    )
