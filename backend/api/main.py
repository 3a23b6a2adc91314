"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import locations
from settings import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Create app
app = FastAPI(
    title="Event Location API",
    description="Location search, map-click resolution and timezone lookup for the event dashboard",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(locations.router, prefix="/locations", tags=["locations"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Event Location API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "provider_configured": locations.places.is_configured}
