from fastapi import (
    FastAPI,
)
from fastapi.middleware.cors import CORSMiddleware

from lostfound.core.ratelimit import build_rate_limiter
from lostfound.middleware import RateLimit
from lostfound.routers import get_routers
from lostfound.shared import Logger, load_config
from lostfound.shared.db import engine
from lostfound.shared.http import register_exception_handlers, send_success

logger = Logger(__name__).get_logger()

config = load_config()


# ================================================================================
#       FastAPI Setup
# ================================================================================
app = FastAPI(title="Lost & Found IoT API")

for router in get_routers():
    app.include_router(router)

register_exception_handlers(app)

origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.rate_limiter = build_rate_limiter(config.network.rate_limit, engine)
app.add_middleware(RateLimit)


@app.get("/")
async def index():
    return send_success(
        {
            "name": app.title,
            "endpoints": {
                "arduino": "/arduino/*",
                "auth": "/auth/*",
                "boxes": "/boxes/*",
            },
        },
        "API is running",
    )


# ================================================================================
#       Command Line
# ================================================================================
def welcome():
    # Log server banner
    for line in config.general.title.split("\n"):
        logger.info(line)

    logger.info("Starting lost & found box server")
    if config.auth.allow_query_token:
        logger.warning("Query string tokens are enabled; disable them in production")


def main(argv=None):
    welcome()

    import uvicorn

    uvicorn.run(
        "lostfound.main:app",
        host=config.network.host,
        port=config.network.port,
        reload=config.network.reload,
    )


if __name__ == "__main__":
    main()
