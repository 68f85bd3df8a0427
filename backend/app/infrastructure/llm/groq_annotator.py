"""
Groq Transcript Annotator
Cold-call transcript analysis using Groq chat completions

Low temperature and JSON-object response format; the model's
disposition is validated against the outcome vocabulary and dropped
when it is not one of ours.
"""
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from groq import AsyncGroq

from app.domain.exceptions import UpstreamUnavailableError
from app.domain.interfaces.transcript_annotator import TranscriptAnnotator
from app.domain.models.dialer_lead import DialerOutcome, parse_outcome
from app.domain.models.transcript_annotation import TranscriptAnnotation

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a cold call analyst. You read transcripts of outbound sales calls "
    "and respond ONLY with valid JSON."
)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def build_prompt(transcript: str, business_name: Optional[str], lead_context: Optional[str]) -> str:
    dispositions = ", ".join(o.value for o in DialerOutcome)
    lines = [
        "Summarize this cold call transcript.",
        "",
        f"Business: {business_name or 'Unknown'}",
    ]
    if lead_context:
        lines.append(f"Lead Context: {lead_context}")
    lines += [
        "",
        "Transcript:",
        transcript,
        "",
        "Extract the following in JSON format:",
        "{",
        f'  "disposition": "<one of: {dispositions}>",',
        '  "summary": "<2-3 sentence summary of the call>",',
        '  "keyPoints": ["<key discussion point>"],',
        '  "objections": ["<objection>"],',
        '  "nextSteps": ["<next step>"],',
        '  "notes": "<brief notes for the lead file>"',
        "}",
        "",
        "If the transcript is unclear or very short, use your best judgment.",
    ]
    return "\n".join(lines)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


def parse_annotation(text: str) -> TranscriptAnnotation:
    """
    Build an annotation from raw model output.

    Raises:
        ValueError: no JSON object could be parsed
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ValueError("No JSON object in model response")

    data: Dict[str, Any] = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("Model response is not a JSON object")

    disposition = parse_outcome(data.get("disposition")) if isinstance(data.get("disposition"), str) else None
    if data.get("disposition") and disposition is None:
        logger.info(f"Dropping unknown suggested disposition: {data.get('disposition')}")

    return TranscriptAnnotation(
        disposition=disposition,
        summary=data.get("summary") or None,
        notes=data.get("notes") or None,
        key_points=_string_list(data.get("keyPoints")),
        objections=_string_list(data.get("objections")),
        next_steps=_string_list(data.get("nextSteps")),
    )


class GroqTranscriptAnnotator(TranscriptAnnotator):
    """Transcript annotator on Groq"""

    def __init__(self):
        self._client: Optional[AsyncGroq] = None
        self._config: dict = {}
        self._model: str = "llama-3.3-70b-versatile"
        self._temperature: float = 0.2  # Factual extraction, not conversation
        self._max_tokens: int = 1024

    async def initialize(self, config: dict) -> None:
        """Initialize Groq client with configuration"""
        self._config = config
        api_key = config.get("api_key")
        if not api_key or api_key.startswith("${"):
            # Unresolved placeholder from the YAML config
            api_key = os.getenv("GROQ_API_KEY")

        if not api_key:
            raise ValueError("Groq API key not found in config or environment")

        self._client = AsyncGroq(api_key=api_key)
        self._model = config.get("model", self._model)
        self._temperature = config.get("temperature", self._temperature)
        self._max_tokens = config.get("max_tokens", self._max_tokens)

    async def annotate(
        self,
        transcript: str,
        business_name: Optional[str] = None,
        lead_context: Optional[str] = None,
    ) -> TranscriptAnnotation:
        if not self._client:
            raise RuntimeError("Groq client not initialized. Call initialize() first.")

        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(transcript, business_name, lead_context)},
                ],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise UpstreamUnavailableError(f"Groq annotation failed: {str(e)}")

        text = completion.choices[0].message.content if completion.choices else ""
        try:
            return parse_annotation(text)
        except ValueError as e:
            raise UpstreamUnavailableError(f"Groq returned an unusable annotation: {e}")

    async def cleanup(self) -> None:
        """Release resources"""
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def name(self) -> str:
        return "groq"

    def __repr__(self) -> str:
        return f"GroqTranscriptAnnotator(model={self._model}, temperature={self._temperature})"
