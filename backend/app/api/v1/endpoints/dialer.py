"""
Power Dialer Endpoints
Disposition recording, the call queue, lead intake and transcript annotation
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel, Field

from app.api.v1.dependencies import (
    CurrentUser,
    get_annotation_service,
    get_current_user,
    get_disposition_engine,
    get_lead_intake,
    get_queue_builder,
)
from app.api.v1.errors import to_http_exception
from app.domain.exceptions import DialerError
from app.domain.models.dialer_lead import DialerLead
from app.domain.models.dialer_queue import QueueSnapshot
from app.domain.models.transcript_annotation import TranscriptAnnotation
from app.domain.services.disposition_engine import DispositionEngine
from app.domain.services.lead_intake import LeadIntakeService
from app.domain.services.queue_builder import QueueBuilder
from app.domain.services.transcript_annotation import TranscriptAnnotationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dialer", tags=["dialer"])


class DispositionRequest(BaseModel):
    """
    Outcome of one call, reported by the caller.

    lead_id and outcome are validated by the engine so a missing value
    is a 400, not a schema error.
    """
    lead_id: Optional[str] = None
    outcome: Optional[str] = None
    notes: Optional[str] = None
    demo_date: Optional[datetime] = None
    callback_at: Optional[datetime] = None
    caller_number_id: Optional[str] = Field(None, description="Pool number used for the call")


class DispositionResponse(BaseModel):
    success: bool = True
    new_status: str
    attempt_count: int
    next_call_at: Optional[datetime] = None


class LeadCreate(BaseModel):
    """Request body for adding a lead to the dialer"""
    phone_number: str = Field(..., description="Phone number in any format (will be normalized)")
    business_name: str = Field("", max_length=255)
    website: Optional[str] = Field(None, max_length=500)
    owner_name: Optional[str] = Field(None, max_length=255)
    state: Optional[str] = Field(None, max_length=2, description="US state code")
    timezone: Optional[str] = Field(None, description="ET, CT, MT or PT; derived from state when omitted")
    max_attempts: Optional[int] = Field(None, ge=1)


class SummarizeRequest(BaseModel):
    transcript: Optional[str] = None
    business_name: Optional[str] = None
    lead_context: Optional[str] = None


@router.post("/disposition", response_model=DispositionResponse)
async def record_disposition(
    request: DispositionRequest,
    current_user: CurrentUser = Depends(get_current_user),
    engine: DispositionEngine = Depends(get_disposition_engine),
):
    """
    Record a call outcome against a lead.

    Advances attempt_count, schedules the next call (or closes the lead),
    appends a note and history entry and bumps the daily stats. Pool
    counters for caller_number_id are updated best-effort.
    """
    try:
        result = await engine.record_disposition(
            lead_id=request.lead_id,
            outcome=request.outcome,
            notes=request.notes,
            demo_date=request.demo_date,
            callback_at=request.callback_at,
            caller_number_id=request.caller_number_id,
        )
        return DispositionResponse(
            new_status=result.new_status,
            attempt_count=result.attempt_count,
            next_call_at=result.next_call_at,
        )
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error recording disposition: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to record disposition: {str(e)}")


@router.get("/queue", response_model=QueueSnapshot)
async def get_queue(
    limit: Optional[int] = Query(None, ge=1, description="Max regular-queue leads"),
    timezone: Optional[str] = Query(None, description="Force a region: ET, CT, MT or PT"),
    current_user: CurrentUser = Depends(get_current_user),
    builder: QueueBuilder = Depends(get_queue_builder),
):
    """
    Leads to call right now.

    Due callbacks first, then queued leads in the region whose business
    hours it currently is, with today's progress and a suggested caller ID.
    """
    try:
        return await builder.get_queue(limit=limit, timezone_override=timezone)
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error building dialer queue: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to build queue: {str(e)}")


@router.post("/leads", response_model=DialerLead, status_code=201)
async def create_lead(
    lead: LeadCreate,
    current_user: CurrentUser = Depends(get_current_user),
    intake: LeadIntakeService = Depends(get_lead_intake),
):
    """Add a lead to the dialer in the queued state."""
    try:
        return await intake.create_lead(**lead.model_dump())
    except DialerError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error creating lead: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create lead: {str(e)}")


@router.post("/summarize", response_model=TranscriptAnnotation)
async def summarize_transcript(
    request: SummarizeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    annotations: TranscriptAnnotationService = Depends(get_annotation_service),
):
    """
    AI-suggested disposition and summary for a call transcript.

    Never fails the request because of the annotator: an empty suggestion
    with a reason is returned instead.
    """
    return await annotations.summarize(
        request.transcript,
        business_name=request.business_name,
        lead_context=request.lead_context,
    )
