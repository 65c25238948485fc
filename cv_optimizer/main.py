import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from cv_optimizer import __version__
from cv_optimizer.api.router import limiter, router
from cv_optimizer.config import settings
from cv_optimizer.services.error_classifier import to_user_message

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="CV Optimizer API",
    description="AI-powered resume optimization with PDF/DOCX export",
    version=__version__,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Session-Id", "Content-Disposition"],
)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"error": to_user_message(exc)}
    if settings.debug:
        content["details"] = str(exc)
    return JSONResponse(status_code=500, content=content)


app.include_router(router)
