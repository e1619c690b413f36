import base64
import binascii
import json
import time
from collections.abc import Callable
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from lostfound.core.errors import InvalidTokenError
from lostfound.shared import Logger
from lostfound.shared.config import Auth

__all__ = ["TokenCodec"]

logger = Logger(__name__).get_logger()

ALGORITHM = "HS256"
HEADER = {"alg": ALGORITHM, "typ": "JWT"}


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    # Accept both alphabets and missing padding
    normalized = segment.replace("+", "-").replace("/", "_").rstrip("=")
    padded = normalized + "=" * (-len(normalized) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _decode_json(segment: str) -> dict[str, Any]:
    value = json.loads(_b64decode(segment))
    if not isinstance(value, dict):
        raise ValueError("segment is not a JSON object")
    return value


class TokenCodec:
    """HMAC-SHA256 bearer tokens of the form ``header.claims.signature``.

    Verification is a pure function of the token, the configured secret and
    the clock; nothing is stored or revoked server-side.
    """

    def __init__(self, config: Auth, clock: Callable[[], float] = time.time):
        self.__secret = config.secret.encode("utf-8")
        self.__ttl = config.token_ttl
        self.__clock = clock

    def issue(self, claims: dict[str, Any], ttl: int | None = None) -> str:
        if "subject_id" not in claims:
            raise ValueError("claims must include subject_id")

        now = int(self.__clock())
        payload = {
            **claims,
            "issued_at": now,
            "expires_at": now + (self.__ttl if ttl is None else ttl),
        }

        header_segment = _b64encode(json.dumps(HEADER, separators=(",", ":")).encode())
        payload_segment = _b64encode(json.dumps(payload, separators=(",", ":")).encode())
        signing_input = f"{header_segment}.{payload_segment}"

        signature = self.__sign(signing_input)
        logger.debug("Issued token for subject %s", claims["subject_id"])
        return f"{signing_input}.{_b64encode(signature)}"

    def verify(self, token: str) -> dict[str, Any]:
        parts = token.split(".")
        if len(parts) != 3:
            raise InvalidTokenError("token must have three segments")

        header_segment, payload_segment, signature_segment = parts
        try:
            header = _decode_json(header_segment)
            signature = _b64decode(signature_segment)
        except (ValueError, binascii.Error, UnicodeError) as e:
            raise InvalidTokenError("malformed token") from e

        # The verifier only computes HS256; a token claiming anything else is
        # rejected rather than trusted
        if header.get("alg") != ALGORITHM:
            raise InvalidTokenError("unexpected algorithm")

        # Non-canonical encodings would let distinct segments share a signature
        if _b64encode(signature) != signature_segment.replace("+", "-").replace(
            "/", "_"
        ).rstrip("="):
            raise InvalidTokenError("non-canonical signature encoding")

        mac = hmac.HMAC(self.__secret, hashes.SHA256())
        mac.update(f"{header_segment}.{payload_segment}".encode("utf-8"))
        try:
            mac.verify(signature)
        except InvalidSignature as e:
            raise InvalidTokenError("signature mismatch") from e

        try:
            claims = _decode_json(payload_segment)
        except (ValueError, binascii.Error, UnicodeError) as e:
            raise InvalidTokenError("malformed claims") from e

        expires_at = claims.get("expires_at")
        if expires_at is not None:
            if not isinstance(expires_at, int | float) or expires_at <= self.__clock():
                raise InvalidTokenError("token expired")

        return claims

    def __sign(self, signing_input: str) -> bytes:
        mac = hmac.HMAC(self.__secret, hashes.SHA256())
        mac.update(signing_input.encode("ascii"))
        return mac.finalize()
