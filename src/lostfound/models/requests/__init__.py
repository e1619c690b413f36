from .auth import LoginRequest, RegisterAccount
from .boxes import BoxCommandRequest, StatusUpdate

__all__ = [
    "BoxCommandRequest",
    "LoginRequest",
    "RegisterAccount",
    "StatusUpdate",
]
