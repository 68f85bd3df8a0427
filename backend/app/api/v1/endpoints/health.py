"""
Health Check Endpoint
Provides health status for Docker health checks and monitoring
"""
from fastapi import APIRouter, Depends, status
from datetime import datetime, timezone
from typing import Dict

from app.api.v1.dependencies import get_store
from app.domain.interfaces.dialer_store import DialerStore

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(store: DialerStore = Depends(get_store)) -> Dict[str, str]:
    """
    Health check endpoint for Docker and monitoring systems.

    Returns:
        Dict with status, timestamp and the active store backend
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "power-dialer-backend",
        "store": type(store).__name__,
    }
