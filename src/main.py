# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config import settings
from src.database import SessionLocal
from src.rbac.patterns import InvalidPermissionPatternError
from src.services.authorization_gate import AuthorizationError
from src.services.permission_cache import PermissionCache
from src.services.rbac_seed_service import seed_rbac_data
from src.services.rbac_service import RbacServiceError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    # Startup: one permission cache per process
    app.state.permission_cache = PermissionCache(
        ttl_seconds=settings.permission_cache_ttl_seconds
    )

    if settings.seed_on_startup:
        logger.info("Seeding RBAC data...")
        db = SessionLocal()
        try:
            seed_rbac_data(db)
        finally:
            db.close()

    yield

    # Shutdown: Cleanup
    logger.info("Clearing permission cache...")
    app.state.permission_cache.clear()


app = FastAPI(
    title=settings.app_name,
    description="Role and permission authorization for IT asset management",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(
    request: Request, exc: AuthorizationError
) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RbacServiceError)
async def rbac_service_error_handler(
    request: Request, exc: RbacServiceError
) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(InvalidPermissionPatternError)
async def invalid_pattern_handler(
    request: Request, exc: InvalidPermissionPatternError
) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include API router after it's created
from src.api.v1.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
