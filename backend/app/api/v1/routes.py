"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from app.api.v1.endpoints import (
    dialer,
    numbers,
    call_stats,
    webhooks,
    health,
)

api_router = APIRouter()

# Portal (authenticated)
api_router.include_router(dialer.router)
api_router.include_router(numbers.router)
api_router.include_router(call_stats.router)

# Provider webhooks (unauthenticated)
api_router.include_router(webhooks.router)

api_router.include_router(health.router)
