"""
Shared fixtures for dialer unit tests
"""
import itertools
from datetime import datetime, timedelta, timezone

import pytest

from app.core.config import Settings
from app.domain.models.dialer_lead import DialerLead
from app.domain.models.phone_number import PoolNumber
from app.infrastructure.storage.memory_store import InMemoryDialerStore


# Wednesday 2026-03-04 19:05 UTC = 2:05 PM Eastern (EST)
NOW = datetime(2026, 3, 4, 19, 5, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        supabase_url=None,
        supabase_service_key=None,
        reference_timezone="America/New_York",
    )


@pytest.fixture
def store(settings):
    return InMemoryDialerStore(settings)


@pytest.fixture
def make_lead():
    """Factory for leads with distinct ids, phone numbers and creation times."""
    counter = itertools.count(1)

    def _make(**overrides) -> DialerLead:
        n = next(counter)
        data = {
            "id": f"lead-{n}",
            "business_name": f"Business {n}",
            "phone_number": f"+1512555{n:04d}",
            "state": "TX",
            "timezone": "CT",
            "created_at": NOW - timedelta(days=30) + timedelta(minutes=n),
        }
        data.update(overrides)
        return DialerLead(**data)

    return _make


@pytest.fixture
def make_number():
    counter = itertools.count(1)

    def _make(**overrides) -> PoolNumber:
        n = next(counter)
        data = {
            "id": f"num-{n}",
            "phone_number": f"+1737555{n:04d}",
            "state": "TX",
            "area_code": "737",
            "created_at": NOW - timedelta(days=10) + timedelta(minutes=n),
        }
        data.update(overrides)
        return PoolNumber(**data)

    return _make
