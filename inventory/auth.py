import logging
import os
import secrets

from fastapi import Security, HTTPException, status
from fastapi.security.api_key import APIKeyHeader

logger = logging.getLogger(__name__)

API_KEY = os.environ.get("API_KEY", "dev-insecure-key")
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_api_key(key: str = Security(api_key_header)):
    if not key or not secrets.compare_digest(key.encode(), API_KEY.encode()):
        logger.debug("rejected request with %s API key", "invalid" if key else "missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return key
