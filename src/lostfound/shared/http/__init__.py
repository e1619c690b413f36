from .handlers import register_exception_handlers, storage_errors
from .response import send_error, send_success

__all__ = [
    "register_exception_handlers",
    "send_error",
    "send_success",
    "storage_errors",
]
