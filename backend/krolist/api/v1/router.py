"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from krolist.api.v1 import admin, health, search

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(search.router, prefix="/search", tags=["search"])
api_v1_router.include_router(admin.router, prefix="/admin", tags=["admin"])
