import logging
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from users_service.core.database import get_db
from users_service.core.exceptions import MissingCredentials, UnknownSubject
from users_service.core.identity import Identity
from users_service.core.security import verify_token
from users_service.models.user import Role
from users_service.repositories.user_repository import user_repository

logger = logging.getLogger(__name__)

# Extracts "Authorization: Bearer <token>"; auto_error=False lets us raise our own 401
bearer_scheme = HTTPBearer(auto_error=False)


def authenticate(token: Optional[str], db: Session) -> Identity:
    """
    Resolve a bearer token to the identity of a stored user.

    The role comes from the stored user, not from the token, so role changes
    take effect without the user obtaining a new token.
    """
    if not token:
        raise MissingCredentials()

    # Raises InvalidToken / TokenExpired
    claims = verify_token(token)

    user = user_repository.find_by_username(claims.subject, db)
    if user is None:
        logger.warning(f"Token subject {claims.subject} does not match any user")
        raise UnknownSubject()

    role = Role.parse(user.role)
    if role is None:
        logger.warning(f"User {user.id} has unrecognized role {user.role!r}")
    elif claims.role != role.value:
        logger.debug(f"Token role {claims.role!r} for user {user.id} differs from stored role {role.value!r}")

    return Identity(user_id=user.id, username=user.username, role=role)


def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    """
    FastAPI dependency guarding every /api/users endpoint.

    The identity is returned to the handler and also kept on request.state
    for the rest of the request.
    """
    token = credentials.credentials if credentials else None
    identity = authenticate(token, db)
    request.state.identity = identity
    return identity
