"""
Nightlife Access - FastAPI Backend
Main application entry point (backoffice under /admin, landing under /api)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from app.core.config import settings
from app.core.db import engine, Base
from app.api import routes_admin, routes_codes, routes_payments, routes_public, routes_reservations, routes_staff, routes_tickets
from app.utils.responses import error_response, http_exception_content

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Ticketing, table reservations and door control for nightlife events",
    version="1.0.0",
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


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content=http_exception_content(exc), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Body / query validation errors use the same {success, error} shape"""
    errors = exc.errors()
    message = errors[0].get("msg", "Solicitud inválida") if errors else "Solicitud inválida"
    return error_response(message, status_code=400)


# Include routers
app.include_router(routes_public.router, prefix="/api", tags=["landing"])
app.include_router(routes_payments.router, prefix="/api", tags=["payments"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
app.include_router(routes_codes.router, prefix="/admin", tags=["codes"])
app.include_router(routes_reservations.router, prefix="/admin", tags=["reservations"])
app.include_router(routes_tickets.router, prefix="/admin", tags=["tickets"])
app.include_router(routes_staff.router, prefix="/admin", tags=["staff"])
app.include_router(routes_payments.admin_router, prefix="/admin", tags=["payments"])


@app.get("/health")
async def health():
    return {"success": True, "status": "ok"}

# Note: Run this ASGI app directly with Uvicorn or Hypercorn. For Gunicorn,
# use `uvicorn.workers.UvicornWorker` instead of wrapping the app.

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
