"""
Error serialization - One JSON shape for every failure.

Body: {"success": false, "error": <ErrorKind value>, "message": <text>}
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from listening_circle.api.models import ErrorResponse
from listening_circle.domain.exceptions import AuthError, ErrorKind
from listening_circle.domain.results import Err

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_OR_EXPIRED_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

ERROR_RESPONSES = {
    code: {"model": ErrorResponse} for code in sorted(set(STATUS_BY_KIND.values()))
}


def error_response(err: Err) -> JSONResponse:
    body = ErrorResponse(error=err.kind.value, message=err.message)
    return JSONResponse(status_code=STATUS_BY_KIND[err.kind], content=body.model_dump(by_alias=True))


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return error_response(Err.from_error(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    field = ".".join(str(part) for part in errors[0]["loc"][1:]) if errors else ""
    message = f"Invalid {field}" if field else "Invalid request"
    return error_response(Err(kind=ErrorKind.VALIDATION, message=message))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
