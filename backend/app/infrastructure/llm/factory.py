"""
Transcript Annotator Factory
"""
from typing import Dict, Type

from app.domain.interfaces.transcript_annotator import TranscriptAnnotator
from app.infrastructure.llm.groq_annotator import GroqTranscriptAnnotator


class AnnotatorFactory:
    """Factory for creating transcript annotator instances"""

    _providers: Dict[str, Type[TranscriptAnnotator]] = {}

    @classmethod
    def create(cls, provider_name: str) -> TranscriptAnnotator:
        """Create annotator instance"""
        if provider_name not in cls._providers:
            available = ", ".join(cls._providers.keys()) if cls._providers else "None"
            raise ValueError(f"Unknown annotator provider: {provider_name}. Available: {available}")

        provider_class = cls._providers[provider_name]
        return provider_class()

    @classmethod
    def register(cls, name: str, provider_class: Type[TranscriptAnnotator]) -> None:
        """Register a provider"""
        cls._providers[name] = provider_class

    @classmethod
    def list_providers(cls) -> list[str]:
        """List available providers"""
        return list(cls._providers.keys())


AnnotatorFactory.register("groq", GroqTranscriptAnnotator)
