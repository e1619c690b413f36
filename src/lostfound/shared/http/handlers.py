from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from lostfound.core.errors import ApiError, StorageError
from lostfound.shared import Logger

from .response import send_error

__all__ = ["register_exception_handlers", "storage_errors"]

logger = Logger(__name__).get_logger()


@contextmanager
def storage_errors(operation: str, stacklevel=1):
    # Go 3 levels up to escape @contextmanager methods and current function
    stack_level = 2 + stacklevel
    kw = {"stacklevel": stack_level}
    try:
        yield

    except SQLAlchemyError as e:
        # Full detail stays in the server log
        logger.error("Storage failure during %s: %s", operation, e, **kw)
        raise StorageError() from e


def _field_name(loc: tuple) -> str:
    # Drop the "body"/"query" prefix FastAPI puts on every location
    parts = [str(part) for part in loc[1:]] or [str(part) for part in loc]
    return ".".join(parts)


async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s rejected (%s): %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.message,
        )
    return send_error(exc.message, exc.status_code, exc.details, exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {_field_name(tuple(err["loc"])): err["msg"] for err in exc.errors()}
    logger.info("%s %s invalid input: %s", request.method, request.url.path, errors)
    return send_error("Validation failed", 422, {"validation_errors": errors})


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return send_error(str(exc.detail), exc.status_code, headers=exc.headers)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return send_error(StorageError.default_message, 500)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
