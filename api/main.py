#!/usr/bin/env python3
"""
Parcel Compliance API - register import, parcel classification and vocabulary management.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import settings
from api.dependencies import get_register_mappings, shutdown_pipeline
from api.middleware.auth import AuthMiddleware
from api.middleware.logging import LoggingMiddleware
from api.routers import feacn, health, parcels, registers, vocabulary
from db.session import init_db

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level))
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.project_name,
    version=settings.version,
    description="Classifies partner parcel registers against stop words, key words and FEACN rules"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)
app.add_middleware(LoggingMiddleware)
if settings.auth_enabled:
    app.add_middleware(AuthMiddleware)
    logger.info("JWT authentication enabled")


@app.on_event("startup")
async def startup():
    init_db()
    get_register_mappings()
    logger.info(f"{settings.project_name} {settings.version} started ({settings.environment})")


@app.on_event("shutdown")
async def shutdown():
    shutdown_pipeline()
    logger.info("Import pipeline stopped")


# Expose health checks both at root and versioned paths
app.include_router(health.router, prefix=settings.api_v1_prefix)
app.include_router(registers.router, prefix=settings.api_v1_prefix)
app.include_router(parcels.router, prefix=settings.api_v1_prefix)
app.include_router(vocabulary.router, prefix=settings.api_v1_prefix)
app.include_router(feacn.router, prefix=settings.api_v1_prefix)


@app.get("/healthz")
async def root_health_check():
    """Root-level health endpoint for external monitors."""
    return await health.health_check()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
