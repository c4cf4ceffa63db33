"""
Physician Finder API.

A thin serving layer over the physician directory in PostgreSQL (populated
from NPPES by the Dagster pipeline), plus CRUD for the users, organizations
and finder instances that partner finders are built on.

Run with: uvicorn api.main:app --reload --port 8000

Architecture:
    Dagster (writes physicians) → PostgreSQL ← FastAPI (reads, manages tenants)
    FastAPI never does heavy computation: ranking and fuzzy matching run in
    PostgreSQL (full-text search + pg_trgm).

Endpoints:
    GET /                           → API info + health check
    GET /physicians/search?query=   → Ranked search with state/zip filters (paginated)
    GET /physicians/{npi}           → Single physician profile
    /users, /organizations, /finders → CRUD for tenants and their finders
"""

from fastapi import FastAPI

from api.config import configure_logging
from api.routes import finder_instances, organizations, physicians, users

configure_logging()

app = FastAPI(
    title="Physician Finder API",
    description=(
        "REST API for searching a physician directory sourced from the NPPES "
        "public registry, and for managing the organizations and finder "
        "instances that embed it."
    ),
    version="1.0.0",
)

# Register routers
app.include_router(physicians.router)
app.include_router(users.router)
app.include_router(organizations.router)
app.include_router(finder_instances.router)


@app.get("/", tags=["Health"])
def root():
    """API health check and info."""
    return {
        "service": "Physician Finder API",
        "version": "1.0.0",
        "data_source": "NPPES (National Plan and Provider Enumeration System)",
        "endpoints": {
            "search": "/physicians/search?query=<query>&location=<state or zip>",
            "physician_detail": "/physicians/{npi}",
            "users": "/users",
            "organizations": "/organizations",
            "finders": "/finders",
            "docs": "/docs",
        },
    }
