import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from users_service.core.config import settings
from users_service.core.exceptions import InvalidToken, TokenExpired

logger = logging.getLogger(__name__)

# CryptContext handles password hashing using bcrypt
# bcrypt salts every hash, so the same password never hashes the same way twice
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


@dataclass(frozen=True)
class TokenClaims:
    """Verified payload of an access token"""
    subject: str
    role: str
    expires_at: datetime


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using constant-time comparison"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return pwd_context.hash(password)


def create_access_token(subject: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Mint a signed token carrying the subject (username) and role claims.

    The service itself never issues tokens; this exists for tests and
    operational tooling that need a token the verifier accepts.
    """
    if expires_delta is None:
        expires_delta = timedelta(seconds=settings.JWT_EXPIRATION_SECONDS)
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": subject,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _read_expiry(claims: dict) -> datetime:
    exp = claims.get("exp")
    # bool is an int subclass but never a valid timestamp
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise InvalidToken("Token has no valid expiry")
    try:
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        # Out of range for the platform clock, or inf/nan
        raise InvalidToken("Token has no valid expiry")


def verify_token(token: str, now: Optional[datetime] = None) -> TokenClaims:
    """
    Validate a token's structure, expiry and signature and return its claims.

    Expiry is evaluated before the signature so that an expired token is
    always reported as expired. A token is expired from the instant of its
    ``exp`` claim onwards.

    Raises InvalidToken or TokenExpired. Neither the token nor the secret is
    ever included in log lines or error messages.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    if not token:
        raise InvalidToken("Token is empty")

    try:
        unverified = jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.warning(f"Rejected malformed token: {type(e).__name__}")
        raise InvalidToken("Token is malformed")

    if not isinstance(unverified, dict):
        raise InvalidToken("Token is malformed")

    expires_at = _read_expiry(unverified)
    if now >= expires_at:
        logger.warning(f"Rejected expired token (expired at {expires_at.isoformat()})")
        raise TokenExpired()

    try:
        # Expiry was already checked above against the caller's clock
        claims = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError as e:
        logger.warning(f"Rejected token with bad signature or claims: {type(e).__name__}")
        raise InvalidToken()

    subject = claims.get("sub")
    role = claims.get("role")
    if not isinstance(subject, str) or not subject:
        raise InvalidToken("Token has no subject")
    if not isinstance(role, str) or not role:
        raise InvalidToken("Token has no role")

    logger.debug(f"Token verified for subject {subject}")
    return TokenClaims(subject=subject, role=role, expires_at=expires_at)
