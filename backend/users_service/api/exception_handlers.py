import logging
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from users_service.core.exceptions import AuthenticationError, UsersServiceError, ValidationFailed

logger = logging.getLogger(__name__)


def _field_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        # loc looks like ("body", "username") or ("query", "name")
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(location) or "request", "message": message})
    return errors


async def users_service_error_handler(request: Request, exc: UsersServiceError) -> JSONResponse:
    content = {"detail": exc.message, "code": exc.code}
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    if isinstance(exc, ValidationFailed):
        content["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = _field_errors(exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({
            "detail": ValidationFailed.default_message,
            "code": ValidationFailed.code,
            "errors": errors,
        }),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UsersServiceError, users_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
