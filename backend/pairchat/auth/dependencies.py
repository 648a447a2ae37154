"""FastAPI dependencies for bearer-authenticated HTTP routes."""
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request

from .service import InvalidCredential, TokenService, parse_bearer

logger = logging.getLogger(__name__)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


async def current_user_id(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> str:
    """Resolve the caller's identity or fail with 401."""
    token = parse_bearer(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return get_token_service(request).verify(token)
    except InvalidCredential as e:
        logger.info(f"Rejected HTTP credential: {e}")
        raise HTTPException(status_code=401, detail="Not authenticated")
