# File: app/api/v1/api.py
from fastapi import APIRouter
from app.api.v1.endpoints import registrations, packages, events, scans, credentials, short_links

# Create main API router
api_router = APIRouter()

api_router.include_router(
    registrations.router,
    prefix="/registrations",
    tags=["registrations"]
)

api_router.include_router(
    packages.router,
    prefix="/packages",
    tags=["packages"]
)

api_router.include_router(
    events.router,
    prefix="/events",
    tags=["events"]
)

api_router.include_router(
    scans.router,
    prefix="/scans",
    tags=["scans"]
)

api_router.include_router(
    credentials.router,
    prefix="/credentials",
    tags=["credentials"]
)

api_router.include_router(
    short_links.router,
    prefix="/short-links",
    tags=["short-links"]
)
