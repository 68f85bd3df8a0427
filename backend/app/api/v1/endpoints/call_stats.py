"""
Call Stats Endpoints
Daily call counters, rolling averages and the calls dashboard
"""
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel, Field

from app.api.v1.dependencies import CurrentUser, get_current_user, get_stats_aggregator
from app.api.v1.errors import to_http_exception
from app.domain.exceptions import DialerError
from app.domain.models.call_stats import CallDashboard, DailyCallStats, RollingStats
from app.domain.services.stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calls", tags=["calls"])


class StatsAdjustment(BaseModel):
    """Manual increments for counters the dialer cannot observe"""
    call_date: Optional[date] = Field(None, description="Defaults to today (UTC)")
    demos_held: int = Field(0, ge=0)
    deals_closed: int = Field(0, ge=0)
    hours_dialed: float = Field(0.0, ge=0.0)


class DailyStatsResponse(BaseModel):
    stats: List[DailyCallStats]


@router.get("/stats", response_model=DailyStatsResponse)
async def list_daily_stats(
    from_date: Optional[date] = Query(None, alias="from", description="Start date (YYYY-MM-DD)"),
    to_date: Optional[date] = Query(None, alias="to", description="End date (YYYY-MM-DD)"),
    current_user: CurrentUser = Depends(get_current_user),
    stats: StatsAggregator = Depends(get_stats_aggregator),
):
    """Daily rows in the range, newest first."""
    try:
        return DailyStatsResponse(stats=await stats.list_daily(from_date, to_date))
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/stats", response_model=DailyCallStats)
async def adjust_daily_stats(
    adjustment: StatsAdjustment,
    current_user: CurrentUser = Depends(get_current_user),
    stats: StatsAggregator = Depends(get_stats_aggregator),
):
    """Add demos held, deals closed or hours dialed to a day's row."""
    try:
        return await stats.adjust(
            call_date=adjustment.call_date,
            demos_held=adjustment.demos_held,
            deals_closed=adjustment.deals_closed,
            hours_dialed=adjustment.hours_dialed,
        )
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error adjusting daily stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to adjust stats: {str(e)}")


@router.get("/stats/rolling", response_model=RollingStats)
async def get_rolling_stats(
    days: int = Query(7, ge=1, le=365),
    current_user: CurrentUser = Depends(get_current_user),
    stats: StatsAggregator = Depends(get_stats_aggregator),
):
    """Averages and funnel rates over the last `days` dates that have data."""
    try:
        return await stats.rolling(days)
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/dashboard", response_model=CallDashboard)
async def get_call_dashboard(
    current_user: CurrentUser = Depends(get_current_user),
    stats: StatsAggregator = Depends(get_stats_aggregator),
):
    """Today, rolling 7/30-day aggregates, 30-day history and today's hourly breakdown."""
    try:
        return await stats.dashboard()
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error building call dashboard: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
