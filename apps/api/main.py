"""
Proposal Link Access - FastAPI Backend
Passcode-gated share links and slide analytics for client proposals.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    auth,
    access,
    viewer,
    links,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Proposal Link Access API...")
    validate_security_settings()
    if settings.OTP_DEV_LOG_FALLBACK:
        print("⚠️ OTP_DEV_LOG_FALLBACK is enabled: undelivered passcodes are written to the log.")
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Proposal Link Access API",
    description="Email-verified share links and per-slide engagement analytics for client proposals",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(access.router, tags=["Access"])
app.include_router(viewer.router, prefix="/viewer", tags=["Viewer"])
app.include_router(links.router, tags=["Links"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Proposal Link Access API",
        "version": "0.1.0",
        "status": "running"
    }
