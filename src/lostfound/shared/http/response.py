from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from lostfound.shared.clock import format_timestamp, utcnow

__all__ = ["send_error", "send_success"]


def send_success(
    data: Any = None,
    message: str = "Success",
    status_code: int = 200,
) -> JSONResponse:
    content: dict[str, Any] = {
        "success": True,
        "message": message,
        "timestamp": format_timestamp(utcnow()),
    }
    if data is not None:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content=content)


def send_error(
    error: str,
    status_code: int = 400,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "success": False,
        "error": error,
        "code": status_code,
        "timestamp": format_timestamp(utcnow()),
    }
    if details is not None:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content, headers=headers)
