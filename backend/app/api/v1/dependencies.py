"""
API Dependencies
Shared dependencies for authentication, store access, and the dialer services
"""
import logging
import os
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status, Header
from supabase import create_client, Client
from pydantic import BaseModel
from dotenv import load_dotenv

from app.core.config import ConfigManager, Settings, get_settings
from app.domain.interfaces.dialer_store import DialerStore
from app.domain.interfaces.transcript_annotator import TranscriptAnnotator
from app.domain.models.calling_schedule import CallingSchedule
from app.domain.services.disposition_engine import DispositionEngine
from app.domain.services.lead_intake import LeadIntakeService
from app.domain.services.number_pool import NumberPoolService
from app.domain.services.queue_builder import QueueBuilder
from app.domain.services.stats_aggregator import StatsAggregator
from app.domain.services.telephony_events import TelephonyEventHandler
from app.domain.services.transcript_annotation import TranscriptAnnotationService
from app.infrastructure.llm.factory import AnnotatorFactory
from app.infrastructure.storage.memory_store import InMemoryDialerStore
from app.infrastructure.storage.supabase_store import SupabaseDialerStore

load_dotenv()

logger = logging.getLogger(__name__)


class CurrentUser(BaseModel):
    """Current authenticated portal user"""
    id: str
    email: str
    name: Optional[str] = None
    role: str = "user"


def get_supabase() -> Client:
    """
    Get Supabase client with validation.

    Raises:
        RuntimeError: If Supabase URL or SERVICE_KEY is not configured
    """
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_KEY")

    if not url:
        raise RuntimeError(
            "SUPABASE_URL is not configured. "
            "Set SUPABASE_URL environment variable."
        )
    if not key:
        raise RuntimeError(
            "SUPABASE_SERVICE_KEY is not configured. "
            "Set SUPABASE_SERVICE_KEY environment variable."
        )

    return create_client(url, key)


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    supabase: Client = Depends(get_supabase)
) -> CurrentUser:
    """
    Dependency to get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract token from "Bearer <token>"
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = parts[1]

    try:
        user_response = supabase.auth.get_user(token)

        if not user_response or not user_response.user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        auth_user = user_response.user
        metadata = getattr(auth_user, "user_metadata", None) or {}

        return CurrentUser(
            id=str(auth_user.id),
            email=auth_user.email,
            name=metadata.get("name"),
            role=metadata.get("role", "user"),
        )

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ---------- Store and services ----------

@lru_cache()
def get_config_manager() -> ConfigManager:
    return ConfigManager()


@lru_cache()
def get_store() -> DialerStore:
    """
    Process-wide dialer store.

    Supabase when credentials are configured, otherwise an in-memory
    store (local development).
    """
    settings = get_settings()
    if settings.supabase_url and settings.supabase_service_key:
        logger.info("Using Supabase dialer store")
        return SupabaseDialerStore(
            create_client(settings.supabase_url, settings.supabase_service_key),
            settings,
        )
    logger.warning("Supabase not configured, using in-memory dialer store")
    return InMemoryDialerStore(settings)


def get_calling_schedule() -> CallingSchedule:
    return CallingSchedule.from_dict(get_config_manager().get("dialer.schedule"))


def get_number_pool(
    store: DialerStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> NumberPoolService:
    return NumberPoolService(store, settings)


def get_disposition_engine(
    store: DialerStore = Depends(get_store),
    pool: NumberPoolService = Depends(get_number_pool),
    settings: Settings = Depends(get_settings),
) -> DispositionEngine:
    return DispositionEngine(store, pool, settings)


def get_queue_builder(
    store: DialerStore = Depends(get_store),
    schedule: CallingSchedule = Depends(get_calling_schedule),
    settings: Settings = Depends(get_settings),
) -> QueueBuilder:
    return QueueBuilder(store, schedule, settings)


def get_stats_aggregator(store: DialerStore = Depends(get_store)) -> StatsAggregator:
    return StatsAggregator(store)


def get_lead_intake(
    store: DialerStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> LeadIntakeService:
    return LeadIntakeService(store, settings)


def get_telephony_event_handler(store: DialerStore = Depends(get_store)) -> TelephonyEventHandler:
    return TelephonyEventHandler(store)


_annotator: Optional[TranscriptAnnotator] = None


async def get_annotator() -> Optional[TranscriptAnnotator]:
    """Configured transcript annotator, or None when it cannot be set up."""
    global _annotator
    if _annotator is not None:
        return _annotator

    config_manager = get_config_manager()
    try:
        provider = config_manager.get("providers.annotator.active")
        config = config_manager.get_provider_config("annotator")
        annotator = AnnotatorFactory.create(provider)
        await annotator.initialize(config)
    except ValueError as e:
        logger.warning(f"Transcript annotator unavailable: {e}")
        return None

    _annotator = annotator
    return _annotator


def get_annotation_service(
    annotator: Optional[TranscriptAnnotator] = Depends(get_annotator),
) -> TranscriptAnnotationService:
    return TranscriptAnnotationService(annotator)
