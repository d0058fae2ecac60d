from fastapi import APIRouter

from .endpoints import analytics, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(analytics.router)
