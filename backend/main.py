"""IEM Simulator Backend: FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.routes import measurements, simulation

load_dotenv()


def configure_logging():
    logging.basicConfig(
        level=os.getenv("IEMSIM_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    configure_logging()
    yield


app = FastAPI(
    title="IEM Crossover Simulator API",
    description="Frequency response simulation for multi-driver in-ear monitors",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow frontend origins
_frontend_url = os.getenv("FRONTEND_URL")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[_frontend_url] if _frontend_url else [],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(simulation.router, prefix="/api", tags=["Simulation"])
app.include_router(measurements.router, prefix="/api", tags=["Measurements"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "iemsim-backend"}
