# This file bootstraps the FastAPI app, wires up middlewares for
# logging/metrics, sets up CORS, and includes the WhatsApp proxy router.
# The browser only ever reaches the gateway through these routes.

import os

from fastapi import APIRouter, FastAPI, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

import mordomozap.models  # noqa: F401
from mordomozap.api.whatsapp import router as whatsapp_router
from mordomozap.core.config import settings
from mordomozap.core.db import Base, engine
from mordomozap.core.errors import BadRequestError, ProxyError
from mordomozap.core.logging import APILoggingMiddleware
from mordomozap.core.metrics import MetricsMiddleware
from mordomozap.core.startup_checks import run_startup_checks
from mordomozap.core.versioning import API_V1_PREFIX, WHATSAPP_PROXY_PREFIX
from mordomozap.tenancy.middleware import RequestContextMiddleware

# Create DB tables right away so the app doesn't hit missing
# schema issues later. Alembic owns the schema when SKIP_MIGRATIONS=1.
if os.getenv("SKIP_MIGRATIONS") != "1":
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="MordomoZap WhatsApp Connection Proxy")


@app.on_event("startup")
def _run_startup_checks() -> None:
    run_startup_checks()


def _error_response(exc: ProxyError) -> JSONResponse:
    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    response.headers["X-Error-Code"] = exc.code
    return response


@app.exception_handler(ProxyError)
def handle_proxy_error(_request, exc: ProxyError):
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
def handle_validation_error(_request, exc: RequestValidationError):
    # The dashboard expects {error} bodies and a plain 400 for bad input.
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg") or "Invalid request body"
    if location:
        message = f"{location}: {message}"
    return _error_response(BadRequestError(message))


# Observability layers
app.add_middleware(APILoggingMiddleware)
app.add_middleware(MetricsMiddleware)

whatsapp_api = APIRouter(prefix=WHATSAPP_PROXY_PREFIX)
whatsapp_api.include_router(whatsapp_router)
app.include_router(whatsapp_api)

# Attach request context (request_id) early.
app.add_middleware(RequestContextMiddleware)


# /metrics endpoint (Prometheus scraping)
@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# /ping endpoint and versioned health
@app.get("/ping")
@app.get(f"{API_V1_PREFIX}/health")
def ping():
    return {"message": "pong"}


# CORS setup: the dashboard runs on a different origin than the proxy.
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Tenant-ID"],
    expose_headers=["X-Request-Id", "X-Error-Code"],
    max_age=86400,
)
