"""
Entitlement API endpoint - plan, quotas and today's usage for the caller.
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..quota import resolve_entitlement
from ..utils.auth import bearer_token, verify_access_token

router = APIRouter(tags=["entitlement"])

# OPTIONS never reaches the router; the CORS middleware answers it.
ANY_METHOD = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


@router.api_route("/entitlement", methods=ANY_METHOD)
async def get_entitlement(request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Resolve the caller's entitlement.

    Never rejects: a missing or invalid token yields the FREE snapshot.
    """
    identity = verify_access_token(bearer_token(request))
    entitlement = resolve_entitlement(db, identity)
    response.headers["Cache-Control"] = "no-cache"
    return entitlement.model_dump(by_alias=True, exclude_none=True)
