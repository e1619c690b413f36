"""FastAPI dependencies wiring the core services to the configured engine.

Tests swap any of these through ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Query, Request
from sqlalchemy import Engine

from lostfound.core.auth import AuthGuard
from lostfound.core.boxes import BoxCommandQueue
from lostfound.core.errors import ValidationError
from lostfound.core.identity import Identity, IdentityStore
from lostfound.core.passwords import PasswordHasher
from lostfound.core.tokens import TokenCodec
from lostfound.models.schema import Role
from lostfound.shared import load_config
from lostfound.shared.db import get_engine

config = load_config()

_password_hasher = PasswordHasher(rounds=config.auth.bcrypt_rounds)


def get_token_codec() -> TokenCodec:
    return TokenCodec(config.auth)


def get_password_hasher() -> PasswordHasher:
    return _password_hasher


def get_identity_store(engine: Annotated[Engine, Depends(get_engine)]) -> IdentityStore:
    return IdentityStore(engine)


def get_auth_guard(
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    store: Annotated[IdentityStore, Depends(get_identity_store)],
) -> AuthGuard:
    return AuthGuard(codec, store, config.auth)


def get_box_queue(engine: Annotated[Engine, Depends(get_engine)]) -> BoxCommandQueue:
    return BoxCommandQueue(engine, config.devices)


def current_identity(
    request: Request,
    guard: Annotated[AuthGuard, Depends(get_auth_guard)],
) -> Identity:
    return guard.authenticate(request)


def optional_identity(
    request: Request,
    guard: Annotated[AuthGuard, Depends(get_auth_guard)],
) -> Identity | None:
    return guard.authenticate_optional(request)


def require_roles(*roles: Role):
    def role_checker(
        identity: Annotated[Identity, Depends(current_identity)],
    ) -> Identity:
        AuthGuard.authorize(identity, roles)
        return identity

    return role_checker


def device_id(
    queue: Annotated[BoxCommandQueue, Depends(get_box_queue)],
    device_id: Annotated[str | None, Query()] = None,
    box_id: Annotated[str | None, Query(include_in_schema=False)] = None,
) -> str:
    """Device id from the query string; ``box_id`` is the older firmware name."""
    value = device_id or box_id
    if not value:
        raise ValidationError("device_id parameter is required")
    if not queue.is_valid_id(value):
        raise ValidationError("Invalid device_id format")
    return value
