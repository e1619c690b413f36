from .arduino import router as arduino_router
from .auth import router as auth_router
from .boxes import router as boxes_router

_routers = [arduino_router, auth_router, boxes_router]

__all__ = ["get_routers"]


def get_routers():
    return _routers
