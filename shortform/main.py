import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shortform import __version__
from shortform.core import get_settings, limiter
from shortform.routers import ROUTERS

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    s = get_settings()
    logging.basicConfig(
        level=s.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    missing = s.missing_required()
    if missing:
        logger.warning("Missing environment variables: %s", ", ".join(missing))
    logger.info(
        "Short-form automation starting (mode=%s, prompt=%s)",
        "multi_pass" if s.multi_pass_enabled else "single_pass",
        "workspace page" if s.prompt_page_id else "built-in default",
    )
    yield


app = FastAPI(
    title="Short-form Automation",
    description="Turns long-form source documents into short-form post concepts.",
    version=__version__,
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

for router in ROUTERS:
    app.include_router(router)


@app.exception_handler(Exception)
async def unhandled_error(_request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "message": str(exc)},
    )
