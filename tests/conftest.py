"""
Shared pytest fixtures for all tests.

Provides a fresh record store, a health assistant wired to a mocked OpenAI
client, and a TestClient around the FastAPI app with the mocked assistant
installed after startup.
"""

import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Iterator, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

# Ensure test environment: no document database, no sample news noise
os.environ.pop("COSMOS_ENDPOINT", None)
os.environ["SEED_SAMPLE_NEWS"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from clinic.assistant import HealthAssistant
from clinic.storage import ClinicStorage


# ============================================================================
# HELPERS
# ============================================================================


def make_completion(content):
    """Build an object shaped like a chat completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


class StepClock:
    """Deterministic clock returning queued timestamps, then advancing by a second."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self.current = start
        self.queued: List[datetime] = []

    def queue(self, *moments: datetime):
        self.queued.extend(moments)

    def __call__(self) -> datetime:
        if self.queued:
            return self.queued.pop(0)
        self.current += timedelta(seconds=1)
        return self.current


# ============================================================================
# STORE FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def storage(clock) -> ClinicStorage:
    """Empty record store with a deterministic clock."""
    return ClinicStorage(seed_sample_news=False, clock=clock)


# ============================================================================
# AI FIXTURES
# ============================================================================


@pytest.fixture
def openai_client() -> MagicMock:
    """Mock AsyncAzureOpenAI client answering every chat call with fixed text."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=make_completion("Drink water and rest. See a doctor if it persists.")
    )
    return client


@pytest.fixture
def assistant(openai_client) -> HealthAssistant:
    async def provider():
        return openai_client

    return HealthAssistant(provider, deployment="test-deployment", timeout_seconds=0.5)


# ============================================================================
# APP FIXTURES
# ============================================================================


@pytest.fixture
def app():
    from main import create_app

    return create_app()


@pytest.fixture
def client(app, assistant) -> Iterator[TestClient]:
    """TestClient with lifespan started and the mocked assistant installed."""
    with TestClient(app) as test_client:
        app.state.assistant = assistant
        yield test_client
