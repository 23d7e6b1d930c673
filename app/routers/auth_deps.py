"""
Staff access control.
The management endpoints sit behind a shared X-API-Key; the public
scheduling endpoints are addressed by the job seeker's URL token instead.
"""
import logging
import secrets

from fastapi import Security
from fastapi.security import APIKeyHeader

from app.core.config import settings
from app.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_staff_api_key(key: str = Security(api_key_header)) -> None:
    if not settings.enable_api_key_security:
        return
    if not key or not secrets.compare_digest(key, settings.staff_api_key or ""):
        logger.warning("Authentication failed: invalid or missing API key")
        raise AuthenticationError()
