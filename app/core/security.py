from typing import Optional, Dict, Any
import logging

from jose import JWTError, jwt

from app.core.config import settings

logger = logging.getLogger(__name__)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a bearer token issued by the auth service.

    Returns the claims, or None when the signature or expiry check fails.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.debug(f"Token verification failed: {e}")
        return None
