"""
Shared fixtures: a fake Gemini model so no test touches the network.
"""

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from gemini_service import TransformationClient

PNG_BYTES = base64.b64decode("BBBB")
SOURCE_IMAGE = "data:image/jpeg;base64,AAAA"


def make_part(text=None, mime_type=None, data=None):
    inline_data = SimpleNamespace(mime_type=mime_type, data=data) if data is not None else None
    return SimpleNamespace(text=text, inline_data=inline_data)


def make_response(parts, block_reason=None):
    candidate = SimpleNamespace(content=SimpleNamespace(parts=parts))
    feedback = SimpleNamespace(block_reason=block_reason) if block_reason else None
    return SimpleNamespace(candidates=[candidate], prompt_feedback=feedback)


class FakeModelFactory:
    """Stands in for genai.GenerativeModel construction and records every call."""

    def __init__(self, response=None, error=None):
        self.model = Mock()
        self.model.generate_content_async = AsyncMock(return_value=response, side_effect=error)
        self.calls = []

    def __call__(self, api_key, model_name):
        self.calls.append((api_key, model_name))
        return self.model


@pytest.fixture
def image_response():
    return make_response([
        make_part(text="Here is your portrait."),
        make_part(mime_type="image/png", data=PNG_BYTES),
    ])


@pytest.fixture
def fake_factory(image_response):
    return FakeModelFactory(response=image_response)


@pytest.fixture
def client(fake_factory):
    return TransformationClient(api_key="test-key", model_name="test-model", model_factory=fake_factory)


@pytest.fixture
def no_credentials(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
