"""
Error taxonomy of the users service.

Every error carries the HTTP status it maps to and a stable machine-readable
code. Handlers in ``users_service.api.exception_handlers`` turn them into
JSON responses.
"""

from typing import Any, Dict, List, Optional


class UsersServiceError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Authentication (401)

class AuthenticationError(UsersServiceError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Could not validate credentials"


class MissingCredentials(AuthenticationError):
    code = "MISSING_CREDENTIALS"
    default_message = "Bearer token is missing"


class InvalidToken(AuthenticationError):
    code = "INVALID_TOKEN"
    default_message = "Token is invalid"


class TokenExpired(AuthenticationError):
    code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


class UnknownSubject(AuthenticationError):
    code = "UNKNOWN_SUBJECT"
    default_message = "Token subject does not match any user"


# Authorization (403)

class Forbidden(UsersServiceError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You are not allowed to perform this action"


# Lookup (404)

class NotFound(UsersServiceError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "User not found"


# Uniqueness (409)

class UserConflict(UsersServiceError):
    status_code = 409
    code = "USER_CONFLICT"
    default_message = "A user with the same username, email or phone number already exists"


class DuplicateEmail(UserConflict):
    code = "DUPLICATE_EMAIL"
    default_message = "Email already exists"


class DuplicateUsername(UserConflict):
    code = "DUPLICATE_USERNAME"
    default_message = "Username already exists"


class DuplicatePhoneNumber(UserConflict):
    code = "DUPLICATE_PHONE_NUMBER"
    default_message = "Phone number already exists"


# Validation (400)

class ValidationFailed(UsersServiceError):
    status_code = 400
    code = "VALIDATION_FAILED"
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []
