"""
Dialer Lead Domain Models
Leads, outcomes and the append-only call history
"""
from pydantic import BaseModel, Field
from typing import Optional, Set
from datetime import datetime, date, timezone
from enum import Enum


class DialerOutcome(str, Enum):
    """Result of a single call attempt, reported by the caller"""
    NO_ANSWER = "no_answer"
    VOICEMAIL = "voicemail"
    GATEKEEPER = "gatekeeper"
    CONVERSATION = "conversation"
    DEMO_BOOKED = "demo_booked"
    NOT_INTERESTED = "not_interested"
    WRONG_NUMBER = "wrong_number"
    CALLBACK = "callback"


class LeadStatus(str, Enum):
    """Lead lifecycle status"""
    QUEUED = "queued"
    CALLBACK = "callback"
    COMPLETED = "completed"      # Terminal: booked or definitively closed
    ARCHIVED = "archived"        # Terminal: attempts exhausted
    IN_PROGRESS = "in_progress"  # Set by the dialer UI while a call is live


# No pickup: retry in 2-3 days
NO_CONTACT_OUTCOMES: Set[str] = {"no_answer", "voicemail", "gatekeeper"}

# Close the lead regardless of attempt count
TERMINAL_OUTCOMES: Set[str] = {"demo_booked", "not_interested", "wrong_number"}

# Stats classification
CONTACT_OUTCOMES: Set[str] = {"conversation", "demo_booked", "callback", "not_interested"}
CONVERSATION_OUTCOMES: Set[str] = {"conversation", "demo_booked"}

# Statuses still eligible for dialing
CALLABLE_STATUSES = ("queued", "callback", "in_progress")
REGION_BREAKDOWN_STATUSES = ("queued", "callback")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def parse_outcome(value: Optional[str]) -> Optional[DialerOutcome]:
    """Return the outcome for a raw string, or None when it is not in the vocabulary."""
    if not value:
        return None
    try:
        return DialerOutcome(value.strip().lower())
    except ValueError:
        return None


class DialerLead(BaseModel):
    """
    A dialable lead.

    Scheduling fields are only ever written by the disposition engine;
    contact fields by lead intake or administrative edit.
    """

    # Identity
    id: str

    # Contact
    business_name: str = ""
    phone_number: str
    website: Optional[str] = None
    owner_name: Optional[str] = None
    state: Optional[str] = Field(None, description="US state code, e.g. 'TX'")
    timezone: Optional[str] = Field(None, description="Calling region: ET, CT, MT or PT")

    # Scheduling
    status: LeadStatus = LeadStatus.QUEUED
    attempt_count: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=5, ge=1)
    next_call_at: Optional[datetime] = None
    last_called_at: Optional[datetime] = None
    last_outcome: Optional[DialerOutcome] = None

    # Flags set by specific outcomes
    demo_booked: bool = False
    demo_date: Optional[datetime] = None
    not_interested: bool = False
    wrong_number: bool = False

    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"use_enum_values": True}

    @property
    def has_attempts_left(self) -> bool:
        return self.attempt_count < self.max_attempts


class CallHistoryEntry(BaseModel):
    """Immutable record of one disposition event"""
    id: Optional[str] = None
    lead_id: str
    attempt_number: int = Field(..., ge=1)
    outcome: DialerOutcome
    notes: Optional[str] = None
    demo_date: Optional[datetime] = None
    callback_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"use_enum_values": True, "frozen": True}

    @property
    def call_date(self) -> date:
        return self.created_at.astimezone(timezone.utc).date()
