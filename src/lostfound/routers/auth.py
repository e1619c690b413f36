from typing import Annotated

from fastapi import APIRouter, Depends

from lostfound.core.errors import AuthenticationError
from lostfound.core.identity import Identity, IdentityStore
from lostfound.core.passwords import PasswordHasher
from lostfound.core.tokens import TokenCodec
from lostfound.dependencies import (
    current_identity,
    get_identity_store,
    get_password_hasher,
    get_token_codec,
)
from lostfound.models.requests import LoginRequest, RegisterAccount
from lostfound.shared import Logger
from lostfound.shared.http import send_success

logger = Logger(__name__).get_logger()

router = APIRouter(prefix="/auth", tags=["auth"])

Store = Annotated[IdentityStore, Depends(get_identity_store)]
Codec = Annotated[TokenCodec, Depends(get_token_codec)]
Hasher = Annotated[PasswordHasher, Depends(get_password_hasher)]


@router.post("/register")
def register(data: RegisterAccount, store: Store, codec: Codec, hasher: Hasher):
    """
    Create an account and hand back a token so the client is logged in at once.
    Duplicate emails are rejected with 409.
    """
    user = store.create(
        name=data.name,
        email=data.email,
        password_hash=hasher.hash(data.password),
        role=data.role,
        phone=data.phone,
    )
    identity = Identity.from_user(user)
    token = codec.issue({"subject_id": user.user_id, "role": user.role})

    return send_success(
        {"user": identity, "token": token},
        "Registration successful",
        status_code=201,
    )


@router.post("/login")
def login(data: LoginRequest, store: Store, codec: Codec, hasher: Hasher):
    user = store.get_by_email(data.email)

    # Same answer and cost for unknown email, wrong password and inactive account
    if user is None:
        hasher.dummy_verify()
        logger.info("Failed login for %s", data.email)
        raise AuthenticationError("Invalid email or password.")
    if not hasher.verify(data.password, user.password_hash):
        logger.info("Failed login for %s", data.email)
        raise AuthenticationError("Invalid email or password.")
    if not user.is_active:
        logger.info("Login attempt on inactive account %s", user.user_id)
        raise AuthenticationError("Invalid email or password.")

    store.record_login(user.user_id)
    token = codec.issue({"subject_id": user.user_id, "role": user.role})
    logger.info("User %s logged in", user.user_id)

    return send_success({"user": Identity.from_user(user), "token": token}, "Login successful")


@router.get("/profile")
def profile(identity: Annotated[Identity, Depends(current_identity)]):
    return send_success(identity, "Profile retrieved")
