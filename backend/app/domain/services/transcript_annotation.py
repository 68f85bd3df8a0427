"""
Transcript Annotation Service
Wraps the optional annotator so a failure never blocks a manual disposition
"""
import logging
from typing import Optional

from app.domain.exceptions import UpstreamUnavailableError
from app.domain.interfaces.transcript_annotator import TranscriptAnnotator
from app.domain.models.transcript_annotation import TranscriptAnnotation

logger = logging.getLogger(__name__)

MIN_TRANSCRIPT_LENGTH = 10


class TranscriptAnnotationService:

    def __init__(self, annotator: Optional[TranscriptAnnotator] = None):
        self._annotator = annotator

    async def summarize(
        self,
        transcript: Optional[str],
        business_name: Optional[str] = None,
        lead_context: Optional[str] = None,
    ) -> TranscriptAnnotation:
        """Suggestion for a transcript; empty with a reason when none is available."""
        if not transcript or len(transcript.strip()) < MIN_TRANSCRIPT_LENGTH:
            return TranscriptAnnotation.empty("Transcript too short for analysis")

        if self._annotator is None:
            return TranscriptAnnotation.empty("No transcript annotator configured")

        try:
            return await self._annotator.annotate(transcript.strip(), business_name, lead_context)
        except UpstreamUnavailableError as e:
            logger.error(f"Transcript annotation unavailable: {e}")
            return TranscriptAnnotation.empty(str(e))
        except Exception as e:
            logger.error(f"Transcript annotation failed: {e}", exc_info=True)
            return TranscriptAnnotation.empty("Annotation failed")
