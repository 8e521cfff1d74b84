"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from venservice.api.v1 import catalog, reservations

api_router = APIRouter()

# Catalog
api_router.include_router(catalog.router, tags=["Catalog"])

# Reservations
api_router.include_router(reservations.router, prefix="/reservations", tags=["Reservations"])
