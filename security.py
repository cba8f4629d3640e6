import hmac
import logging
from typing import Optional

from fastapi import Header, Query, Request
from passlib.context import CryptContext

logger = logging.getLogger("shop.security")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Forbidden(Exception):
    def __init__(self, message: str = "Forbidden: Admin only"):
        self.message = message
        super().__init__(message)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def require_admin(
    request: Request,
    admin_key: Optional[str] = Query(default=None, alias="adminKey"),
    x_admin_key: Optional[str] = Header(default=None),
) -> None:
    """Shared-secret gate: `?adminKey=` wins over the `X-Admin-Key` header."""
    key = admin_key or x_admin_key
    secret = request.app.state.settings.admin_key
    if not key or not secret or not hmac.compare_digest(key.encode(), secret.encode()):
        logger.warning("Rejected admin request to %s", request.url.path)
        raise Forbidden()
