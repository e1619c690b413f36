import re
from collections.abc import Iterable

from starlette.requests import Request

from lostfound.core.errors import (
    AuthenticationError,
    AuthorizationError,
    InvalidTokenError,
)
from lostfound.core.identity import Identity, IdentityStore
from lostfound.core.tokens import TokenCodec
from lostfound.models.schema import Role
from lostfound.shared import Logger
from lostfound.shared.config import Auth

__all__ = ["AuthGuard"]

logger = Logger(__name__).get_logger()

BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


class AuthGuard:
    """Resolves the caller of a human-facing request to an active Identity.

    Token lookup order is Authorization header, alternate header, then the
    query parameter when enabled. The first match wins. Every failure surfaces
    as the same generic AuthenticationError so callers cannot tell a bad
    signature from an expired token or a deactivated account.
    """

    def __init__(self, codec: TokenCodec, store: IdentityStore, config: Auth):
        self.codec = codec
        self.store = store
        self.config = config

    def extract_token(self, request: Request) -> str | None:
        authorization = request.headers.get("Authorization")
        if authorization:
            match = BEARER_PATTERN.match(authorization.strip())
            if match:
                return match.group(1).strip()

        alternate = request.headers.get(self.config.alternate_header)
        if alternate:
            return alternate.strip()

        if self.config.allow_query_token:
            query_token = request.query_params.get(self.config.query_param)
            if query_token:
                logger.warning(
                    "Token supplied via query parameter on %s", request.url.path
                )
                return query_token

        return None

    def authenticate(self, request: Request) -> Identity:
        token = self.extract_token(request)
        if not token:
            raise AuthenticationError("No authentication token provided.")

        try:
            claims = self.codec.verify(token)
        except InvalidTokenError as e:
            logger.debug("Token rejected: %s", e)
            raise AuthenticationError("Invalid or expired token.") from e

        subject_id = claims.get("subject_id")
        if not isinstance(subject_id, str) or not subject_id:
            raise AuthenticationError("Invalid or expired token.")

        identity = self.store.get_active(subject_id)
        if identity is None:
            logger.info("Token subject %s is unknown or inactive", subject_id)
            raise AuthenticationError("Invalid or expired token.")

        return identity

    def authenticate_optional(self, request: Request) -> Identity | None:
        try:
            return self.authenticate(request)
        except AuthenticationError:
            return None

    @staticmethod
    def authorize(identity: Identity, allowed_roles: Iterable[Role]):
        allowed = set(allowed_roles)
        if identity.role not in allowed:
            logger.info(
                "Role %s of %s not in %s",
                identity.role,
                identity.subject_id,
                sorted(allowed),
            )
            raise AuthorizationError()
