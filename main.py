"""
Event Seating Engine - FastAPI Backend
Main application entry point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from seating import __version__
from seating.core.config import settings
from seating.core.db import engine, Base
from seating.core.errors import SeatingError
from seating.api import routes_admin, routes_checkin, routes_public, ws
from seating.utils.responses import error_response, seating_error_response

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    if not settings.USE_FIREBASE:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Event Seating Engine",
    description="Table capacity, guest assignment and live occupancy statistics for events",
    version=__version__,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(SeatingError)
async def seating_error_handler(request: Request, exc: SeatingError):
    """Every seating error kind reaches the client as the error envelope"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.error_code}): {exc.message}")
    return seating_error_response(exc)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters use the same envelope"""
    return error_response(
        message="Invalid request",
        error_code="validation_error",
        details=jsonable_encoder(exc.errors()),
        status_code=422
    )

# error_code for framework-level HTTP errors (auth, throttling, unknown routes)
HTTP_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    429: "rate_limited",
}

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Auth, rate-limit and routing errors use the same envelope"""
    response = error_response(
        message=str(exc.detail),
        error_code=HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
        status_code=exc.status_code
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_checkin.router, prefix="/checkin", tags=["checkin"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

# Note: Run this ASGI app directly with Uvicorn or Hypercorn. For Gunicorn,
# use `uvicorn.workers.UvicornWorker` instead of wrapping the app.

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
