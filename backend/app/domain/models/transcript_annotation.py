"""
Transcript Annotation Models
Optional AI suggestion attached to a call transcript
"""
from pydantic import BaseModel, Field
from typing import List, Optional

from app.domain.models.dialer_lead import DialerOutcome


class TranscriptAnnotation(BaseModel):
    """
    What an annotator suggests for a call.

    The disposition is only a suggestion; the caller still records the
    outcome through the disposition engine. An empty annotation carries a
    `reason` explaining why nothing was suggested.
    """
    disposition: Optional[DialerOutcome] = None
    summary: Optional[str] = None
    notes: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    objections: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    reason: Optional[str] = None

    model_config = {"use_enum_values": True}

    @classmethod
    def empty(cls, reason: str) -> "TranscriptAnnotation":
        return cls(reason=reason)
