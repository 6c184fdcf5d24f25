"""FastAPI application setup for the AirSeries service."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router as api_router

app = FastAPI(title="AirSeries")

# The mobile client calls from arbitrary origins.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
)


@app.get("/healthz")
def healthz():
    """Liveness probe."""
    return {"status": "ok"}


# API routes
app.include_router(api_router, prefix="/api")
