"""
Authentication and access control.

Bearer tokens are HS256 JWTs carrying ``{"user": {"id", "role", "email", "name"}}``.
Token verification only produces an ``Identity``; the access checks below are
pure functions of that identity and are invoked by the resolvers before every
operation.
"""

from collections.abc import Collection
from datetime import timedelta
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.core.exceptions import ForbiddenError, UnauthenticatedError
from app.core.logging import get_logger
from app.models.common import Role, utcnow

logger = get_logger(__name__)


class Identity(BaseModel):
    """Authenticated caller attached to a unit of work."""

    id: str
    role: Role
    email: str
    name: Optional[str] = None


def create_access_token(identity: Identity, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a bearer token for the given identity.

    Args:
        identity: Identity to embed in the token
        expires_delta: Token lifetime. Defaults to ``settings.JWT_EXPIRES_MINUTES``.

    Returns:
        Encoded JWT
    """
    expires_at = utcnow() + (expires_delta or timedelta(minutes=settings.JWT_EXPIRES_MINUTES))
    payload = {
        "user": identity.model_dump(mode="json", exclude_none=True),
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Identity:
    """
    Verify a bearer token and return the identity it carries.

    Raises:
        UnauthenticatedError: if the token is expired, malformed or carries no valid user
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise UnauthenticatedError("Token expired") from e
    except JWTError as e:
        raise UnauthenticatedError("Invalid token") from e

    try:
        return Identity.model_validate(payload.get("user"))
    except ValidationError as e:
        raise UnauthenticatedError("Invalid token") from e


def authenticate(authorization: Optional[str]) -> Optional[Identity]:
    """
    Resolve the identity from an ``Authorization`` header value.

    Returns None when no header is supplied, so anonymous requests reach the
    resolvers and fail there with UNAUTHENTICATED.

    Raises:
        UnauthenticatedError: if a header is present but is not a valid bearer token
    """
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError("Authentication required")

    identity = decode_access_token(token.strip())
    logger.debug(f"Authenticated {identity.email} ({identity.role.value})")
    return identity


def require_role(allowed: Collection[Role], identity: Optional[Identity]) -> Identity:
    """
    Ensure the identity holds one of the allowed roles.

    Raises:
        ForbiddenError: if the identity is absent or its role is not allowed
    """
    if identity is None or identity.role not in allowed:
        logger.warning(
            f"Role check failed for {identity.email if identity else 'anonymous'}: "
            f"requires one of {sorted(role.value for role in allowed)}"
        )
        raise ForbiddenError("Not authorized")
    return identity


def can_access_employee_record(identity: Optional[Identity], employee_id: str) -> bool:
    """
    ADMIN may access any employee; EMPLOYEE only its own record.
    """
    if identity is None:
        return False
    if identity.role == Role.ADMIN:
        return True
    return identity.role == Role.EMPLOYEE and identity.id == employee_id
