from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from lostfound.core.errors import RateLimitError, StorageError
from lostfound.core.ratelimit import RateLimiter
from lostfound.shared import Config, Logger, load_config
from lostfound.shared.http import send_error

logger = Logger(__name__).get_logger()
config: Config = load_config()
config_rate_limit = config.network.rate_limit


class RateLimit(BaseHTTPMiddleware):
    """Rate Limit middleware for FastApi endpoints
    Fixed window per client IP, counted by the limiter on ``app.state``.

    The IP comes from the socket unless ``trust_forwarded`` is set, in which
    case the first X-Forwarded-For hop is used. That header is client
    controlled, so only enable it behind a proxy that overwrites it.
    """

    def __init__(
        self,
        app,
        dispatch=None,
        trust_forwarded=config_rate_limit.trust_forwarded,
    ):
        super().__init__(app, dispatch)

        # Params
        self.__trust_forwarded = trust_forwarded

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        # Skip rate limiting for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return await call_next(request)

        try:
            # The database store blocks on sqlite locks; keep it off the event loop
            decision = await run_in_threadpool(limiter.check, self.__client_id(request))
        except StorageError as e:
            logger.error("Rate limiter unavailable for %s", request.url.path)
            return send_error(e.message, e.status_code)

        if not decision.allowed:
            error = RateLimitError(decision.retry_after)
            return send_error(error.message, error.status_code, error.details, error.headers)

        return await call_next(request)

    def __client_id(self, request: Request) -> str:
        if self.__trust_forwarded:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                return forwarded.split(",")[0].strip()

        if request.client is None:
            return "unknown"
        return request.client.host
