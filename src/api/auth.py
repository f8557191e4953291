"""API key authentication for the statistics endpoints.

Clients send the configured key verbatim in the Authorization header.
"""

import hmac

import structlog
from fastapi import Header, HTTPException

logger = structlog.get_logger(__name__)

UNAUTHORIZED_MESSAGE = "Invalid or missing API key"


class APIKeyAuth:
    """FastAPI dependency that rejects requests without the expected key.

    Example:
        require_api_key = APIKeyAuth(settings.API_KEY)

        @router.get("/gross_gaming_rev", dependencies=[Depends(require_api_key)])
        async def ggr(): ...
    """

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    async def __call__(self, authorization: str | None = Header(default=None)) -> None:
        # Constant-time comparison to prevent timing attacks
        if authorization is None or not hmac.compare_digest(
            authorization.encode(), self.api_key.encode()
        ):
            logger.warning("api_key_rejected", header_present=authorization is not None)
            raise HTTPException(status_code=401, detail=UNAUTHORIZED_MESSAGE)
