"""
Call Log Domain Models
Provider lifecycle records, kept separate from lead state
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum

from app.domain.models.dialer_lead import utcnow


class CallLogStatus(str, Enum):
    """Internal call lifecycle status"""
    INITIATED = "initiated"
    RINGING = "ringing"
    ANSWERED = "answered"
    BRIDGED = "bridged"
    COMPLETED = "completed"
    BUSY = "busy"
    NO_ANSWER = "no_answer"
    FAILED = "failed"


class SmsStatus(str, Enum):
    """Internal SMS lifecycle status"""
    RECEIVED = "received"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class CallLog(BaseModel):
    """Call record keyed by the provider's call control id"""
    id: Optional[str] = None
    call_control_id: str
    call_session_id: Optional[str] = None
    call_leg_id: Optional[str] = None
    direction: str = "outbound"
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    status: CallLogStatus = CallLogStatus.INITIATED
    lead_id: Optional[str] = None
    duration_seconds: int = 0
    recording_url: Optional[str] = None
    recording_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"use_enum_values": True}


class SmsMessage(BaseModel):
    """One SMS event persisted from the provider"""
    id: Optional[str] = None
    provider_message_id: Optional[str] = None
    direction: str = "inbound"
    from_number: str
    to_number: Optional[str] = None
    body: str = ""
    status: SmsStatus
    lead_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"use_enum_values": True}


class TelephonyEvent(BaseModel):
    """Parsed provider webhook envelope"""
    id: Optional[str] = None
    event_type: str
    occurred_at: Optional[str] = None
    record_type: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
