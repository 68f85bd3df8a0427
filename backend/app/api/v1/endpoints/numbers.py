"""
Phone Number Pool Endpoints
Administrative operations over the outbound caller-ID pool
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field

from app.api.v1.dependencies import CurrentUser, get_current_user, get_number_pool
from app.api.v1.errors import to_http_exception
from app.domain.exceptions import DialerError
from app.domain.models.phone_number import PoolNumber
from app.domain.services.number_pool import NumberPoolService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dialer/numbers", tags=["dialer-numbers"])


class NumberCreate(BaseModel):
    """Request body for adding a number to the pool"""
    phone_number: str = Field(..., description="Phone number in any format (will be normalized)")
    friendly_name: Optional[str] = Field(None, max_length=100)
    area_code: Optional[str] = Field(None, max_length=3, description="Derived from the number when omitted")
    state: Optional[str] = Field(None, max_length=2)
    provider_sid: Optional[str] = None
    max_calls_per_hour: Optional[int] = Field(None, ge=1)
    cooldown_minutes: Optional[int] = Field(None, ge=0)


class NumberUpdate(BaseModel):
    """Editable pool settings; status changes go through retire/reactivate"""
    friendly_name: Optional[str] = Field(None, max_length=100)
    max_calls_per_hour: Optional[int] = Field(None, ge=1)
    cooldown_minutes: Optional[int] = Field(None, ge=0)
    spam_reports: Optional[int] = Field(None, ge=0)
    state: Optional[str] = Field(None, max_length=2)

    model_config = {"extra": "forbid"}


class NumberListResponse(BaseModel):
    numbers: List[PoolNumber]


class ResetResponse(BaseModel):
    reset: int


@router.get("", response_model=NumberListResponse)
async def list_numbers(
    current_user: CurrentUser = Depends(get_current_user),
    pool: NumberPoolService = Depends(get_number_pool),
):
    """List every pool number, oldest first."""
    try:
        return NumberListResponse(numbers=await pool.list_numbers())
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", response_model=PoolNumber, status_code=201)
async def add_number(
    number: NumberCreate,
    current_user: CurrentUser = Depends(get_current_user),
    pool: NumberPoolService = Depends(get_number_pool),
):
    """Add a number to the pool as active."""
    try:
        return await pool.add_number(**number.model_dump())
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error adding pool number: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to add number: {str(e)}")


# Registered before /{number_id} routes so the literal paths win
@router.post("/reset-hourly", response_model=ResetResponse)
async def reset_hourly_counters(
    current_user: CurrentUser = Depends(get_current_user),
    pool: NumberPoolService = Depends(get_number_pool),
):
    """Zero calls_this_hour on non-retired numbers; cooling numbers become active."""
    try:
        return ResetResponse(reset=await pool.reset_hourly())
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/reset-daily", response_model=ResetResponse)
async def reset_daily_counters(
    current_user: CurrentUser = Depends(get_current_user),
    pool: NumberPoolService = Depends(get_number_pool),
):
    """Zero calls_today on every number."""
    try:
        return ResetResponse(reset=await pool.reset_daily())
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/{number_id}", response_model=PoolNumber)
async def update_number(
    number_id: str,
    updates: NumberUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    pool: NumberPoolService = Depends(get_number_pool),
):
    """Edit a number's rate limit, cooldown, spam count, name or state."""
    try:
        return await pool.update_settings(number_id, updates.model_dump(exclude_unset=True))
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{number_id}", response_model=PoolNumber)
async def retire_number(
    number_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    pool: NumberPoolService = Depends(get_number_pool),
):
    """Retire a number. The row is kept for history."""
    try:
        return await pool.retire(number_id)
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{number_id}/reactivate", response_model=PoolNumber)
async def reactivate_number(
    number_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    pool: NumberPoolService = Depends(get_number_pool),
):
    """Return a cooling or retired number to active with a fresh hourly count."""
    try:
        return await pool.reactivate(number_id)
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
