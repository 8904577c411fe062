import logging
import os

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded

from app import models  # noqa: F401  registers tables
from app.database import engine, Base
from app.logging_config import setup_logging
from app.middleware import RequestLoggingMiddleware
from app.ratelimit import limiter
from app.routes import vision
from app.vision.errors import ErrorCode, PipelineError, classify, code_for_status, error_record

load_dotenv()

# Sentry
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    # Disable the auto-detected OpenAI Agents integration due to
    # version incompatibility (sentry-sdk expects a different internal API)
    _disabled = []
    try:
        from sentry_sdk.integrations.openai_agents import OpenAIAgentsIntegration
        _disabled.append(OpenAIAgentsIntegration)
    except ImportError:
        pass
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=0.1,
        send_default_pii=False,
        disabled_integrations=_disabled,
    )

logger = setup_logging()

app = FastAPI(title="Vehicle Vision API", version="0.1.0")
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    record = error_record(ErrorCode.RATE_LIMIT)
    logger.warning(
        "Rate limit exceeded",
        extra={"extra_data": {"path": request.url.path, "limit": str(exc.detail)}},
    )
    response = JSONResponse(status_code=record.http_status, content=record.to_response())
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # unknown routes and methods keep their status but use the error shape
    record = error_record(code_for_status(exc.status_code))
    return JSONResponse(status_code=exc.status_code, content=record.to_response(), headers=exc.headers)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    record = error_record(exc.code)
    logger.warning(
        f"Request rejected: {exc.code.value}",
        extra={"extra_data": {"path": request.url.path, "code": exc.code.value, "detail": exc.detail}},
    )
    return JSONResponse(status_code=record.http_status, content=record.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    record = error_record(ErrorCode.VALIDATION_FAILED)
    return JSONResponse(status_code=record.http_status, content=record.to_response())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}", exc_info=exc)
    record = classify(exc)
    return JSONResponse(status_code=record.http_status, content=record.to_response())


# CORS
origins = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in origins],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)
app.add_middleware(RequestLoggingMiddleware)

# Create tables (use Alembic in production)
Base.metadata.create_all(bind=engine)

# Routes
app.include_router(vision.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok"}
