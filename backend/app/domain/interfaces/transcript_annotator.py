"""
Transcript Annotator Interface
Abstract base class for AI call-transcript annotators
"""
from abc import ABC, abstractmethod
from typing import Optional

from app.domain.models.transcript_annotation import TranscriptAnnotation


class TranscriptAnnotator(ABC):
    """Abstract base class for transcript annotators"""

    @abstractmethod
    async def initialize(self, config: dict) -> None:
        """Initialize the annotator with configuration"""
        pass

    @abstractmethod
    async def annotate(
        self,
        transcript: str,
        business_name: Optional[str] = None,
        lead_context: Optional[str] = None,
    ) -> TranscriptAnnotation:
        """
        Suggest a disposition and summary for a transcript

        Raises:
            UpstreamUnavailableError: the provider call or its response failed
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Release resources"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Annotator name"""
        pass
