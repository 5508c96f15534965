import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi import _rate_limit_exceeded_handler
import sentry_sdk

from checkresume.api.v1.health import router as health_router
from checkresume.api.v1.resume import router as resume_router
from checkresume.api.v1.analytics import router as analytics_router
from checkresume.api.v1.courses import router as courses_router
from checkresume.core.errors import (
    AnalysisError,
    InputError,
    InvalidRequest,
    PersistenceUnavailable,
    PipelineError,
    UnsupportedFormat,
)
from checkresume.core.rate_limit import limiter
from checkresume.core.config import settings
from dotenv import load_dotenv
from checkresume.core.lifespan import lifespan

load_dotenv()
logging.basicConfig(level=settings.log_level, format="%(message)s")
if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn)

logger = logging.getLogger(__name__)

app = FastAPI(title="CheckResume Analysis API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


def status_for(exc: PipelineError) -> int:
    if isinstance(exc, UnsupportedFormat):
        return status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    if isinstance(exc, InputError):
        return 422
    if isinstance(exc, InvalidRequest):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, AnalysisError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, PersistenceUnavailable):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    code = status_for(exc)
    log = logger.warning if code < 500 else logger.error
    log("pipeline_error path=%s code=%s stage=%s status=%s", request.url.path, exc.code, exc.stage, code)
    return JSONResponse(status_code=code, content={"error": exc.to_dict()})


app.include_router(health_router, prefix="/v1", tags=["Health"])
app.include_router(resume_router, prefix="/v1", tags=["Resume"])
app.include_router(analytics_router, prefix="/v1", tags=["Analytics"])
app.include_router(courses_router, prefix="/v1", tags=["Courses"])
