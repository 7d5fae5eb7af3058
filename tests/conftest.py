"""Shared fixtures: in-memory database, fake Gemini model and API client."""

from types import SimpleNamespace as NS

import pytest
from fastapi.testclient import TestClient

from chat_relay.ai_service import GeminiClient
from chat_relay.app import create_app
from chat_relay.config import Settings
from chat_relay.database import create_db_engine, create_session_factory, init_db
from chat_relay.store import ChatStore


def make_response(text="Hi there!", finish_reason="STOP", block_reason=None, candidates=None):
    """Build an object shaped like a google.generativeai GenerateContentResponse."""
    if candidates is None:
        content = NS(parts=[NS(text=text)]) if text is not None else NS(parts=[])
        candidates = [NS(content=content, finish_reason=finish_reason)]
    return NS(candidates=candidates, prompt_feedback=NS(block_reason=block_reason))


class FakeModel:
    """Records prompts and replies with queued responses (or a default reply)."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def generate_content(self, prompt, generation_config=None, safety_settings=None):
        self.calls.append(
            {"prompt": prompt, "generation_config": generation_config,
             "safety_settings": safety_settings}
        )
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return make_response()


@pytest.fixture
def settings():
    return Settings(gemini_api_key="test-key", database_url="sqlite://", ping_on_startup=False)


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def generator(settings, fake_model):
    return GeminiClient(settings, model=fake_model)


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return ChatStore(db)


@pytest.fixture
def client(settings, generator, engine):
    app = create_app(settings, generator=generator, engine=engine)
    with TestClient(app) as test_client:
        yield test_client
