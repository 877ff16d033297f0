# app/core/errors.py
import re
import traceback
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import JWTError, ExpiredSignatureError
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, DataError, StatementError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import (
    AppError, ValidationFailed, DuplicateResource, InvalidIdentifier,
    InvalidToken, ExpiredToken, InternalError, QueryCastError,
)
from app.api.templating import templates

_PG_DUPLICATE_RE = re.compile(r"Key \((?P<field>.+?)\)=\((?P<value>.*?)\)")
_SQLITE_DUPLICATE_RE = re.compile(r"UNIQUE constraint failed: (?P<fields>[\w., ]+)")


def _validation_message(errors) -> str:
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        msg = err.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return f"Invalid input data. {'. '.join(parts)}"


def _handle_integrity_error(exc: IntegrityError) -> AppError:
    detail = str(exc.orig) if exc.orig is not None else str(exc)
    lowered = detail.lower()
    if "unique" not in lowered and "duplicate" not in lowered:
        return ValidationFailed("Invalid input data. A referenced record does not exist or a required value is missing.")

    match = _PG_DUPLICATE_RE.search(detail)
    if match:
        value = match.group("value")
    else:
        match = _SQLITE_DUPLICATE_RE.search(detail)
        value = match.group("fields").strip() if match else "value"
    return DuplicateResource(f'Duplicate field value: "{value}". Please use another value!')


def normalize_error(exc: Exception) -> AppError:
    """Maps any failure onto the AppError it should be reported as"""
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, QueryCastError):
        return InvalidIdentifier(exc.path, exc.value)

    if isinstance(exc, RequestValidationError):
        return ValidationFailed(_validation_message(exc.errors()), errors=list(exc.errors()))

    if isinstance(exc, ValidationError):
        return ValidationFailed(_validation_message(exc.errors()), errors=exc.errors(include_url=False))

    if isinstance(exc, IntegrityError):
        return _handle_integrity_error(exc)

    if isinstance(exc, DataError):
        first_line = str(exc.orig).splitlines()[0] if exc.orig is not None else str(exc)
        return InvalidIdentifier("input", first_line)

    if isinstance(exc, StatementError) and isinstance(exc.orig, (ValueError, TypeError)):
        return InvalidIdentifier("input", str(exc.orig))

    if isinstance(exc, ExpiredSignatureError):
        return ExpiredToken()

    if isinstance(exc, JWTError):
        return InvalidToken()

    if isinstance(exc, StarletteHTTPException):
        if exc.status_code == 404:
            return AppError("Can't find this URL on this server!", 404)
        return AppError(str(exc.detail), exc.status_code)

    return InternalError()


def _is_api_request(request: Request) -> bool:
    return request.url.path.startswith("/api")


def _dev_payload(error: AppError, original: Exception) -> Dict[str, Any]:
    return {
        "status": error.status,
        "error": {
            "kind": error.kind,
            "status_code": error.status_code,
            "is_operational": error.is_operational,
            "detail": repr(original),
            **error.details,
        },
        "message": error.message if error.is_operational else str(original) or error.message,
        "stack": "".join(traceback.format_exception(type(original), original, original.__traceback__)),
    }


def render_error(request: Request, exc: Exception):
    error = normalize_error(exc)

    if not error.is_operational:
        logger.opt(exception=exc).error(f"Unexpected error on {request.method} {request.url.path}")
    elif error.status_code >= 500:
        logger.warning(f"{error.kind} on {request.method} {request.url.path}: {error.message}")

    headers = getattr(exc, "headers", None)

    if _is_api_request(request):
        if not settings.is_production:
            content = _dev_payload(error, exc)
        elif error.is_operational:
            content = error.to_dict()
        else:
            content = {"status": "error", "message": "Something went very wrong!"}
        return JSONResponse(status_code=error.status_code, content=jsonable(content), headers=headers)

    if not settings.is_production or error.is_operational:
        msg = error.message
    else:
        msg = "Please try again later."
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": "Something went wrong!", "msg": msg},
        status_code=error.status_code,
    )


def jsonable(content: Dict[str, Any]) -> Dict[str, Any]:
    return jsonable_encoder(content, custom_encoder={Exception: repr})


async def app_error_handler(request: Request, exc: Exception):
    return render_error(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    for exc_class in (
            AppError,
            QueryCastError,
            RequestValidationError,
            ValidationError,
            IntegrityError,
            DataError,
            StatementError,
            JWTError,
            StarletteHTTPException,
    ):
        app.add_exception_handler(exc_class, app_error_handler)
