"""Shared fixtures for the crash report test suite."""

import base64
import json
from datetime import datetime, timezone
from typing import Callable, List

import httpx
import pytest

from crashgenius.models import Evidence
from crashgenius.utils.http_client import ProviderHttpClient

_ENV_OVERRIDES = (
    "API_KEY",
    "GEMINI_API_KEY",
    "CRASHGENIUS_DEFAULT_PROVIDER",
    "GOOGLE_MODEL_ID",
    "MISTRAL_MODEL_ID",
    "HTTP_TIMEOUT",
    "HTTP_MAX_RETRIES",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in _ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


class RecordingTransport:
    """Hands requests to a handler and keeps them for assertions."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def json_body(self, index: int = -1):
        return json.loads(self.requests[index].content)


@pytest.fixture
def make_http():
    """Build a ProviderHttpClient whose requests go to a handler instead of the network."""
    def _make(handler, max_retries: int = 0):
        recorder = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        return ProviderHttpClient(max_retries=max_retries, client=client), recorder
    return _make


def sse_body(*payloads) -> bytes:
    """Encode payloads as a server-sent-event body; dicts become JSON."""
    frames = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        frames.append(f"data: {data}\n\n")
    return "".join(frames).encode("utf-8")


def make_evidence(name: str, mime_type: str, content: bytes) -> Evidence:
    encoded = base64.b64encode(content).decode("ascii")
    return Evidence(
        name=name,
        mime_type=mime_type,
        payload=f"data:{mime_type};base64,{encoded}",
        size_bytes=len(content),
        modified_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def photo_evidence() -> Evidence:
    return make_evidence("front.jpg", "image/jpeg", b"\xff\xd8\xff\xe0fake-jpeg")


@pytest.fixture
def police_report_evidence() -> Evidence:
    return make_evidence("police_report.pdf", "application/pdf", b"%PDF-1.4 fake")


@pytest.fixture
def report_payload() -> dict:
    return {
        "title": "Frontal Impact on Toyota Camry",
        "summary": "Moderate frontal collision with bumper and hood damage.",
        "vehiclesInvolved": ["Toyota Camry"],
        "identifiedVehicles": [
            {
                "make": "Toyota",
                "model": "Camry",
                "year": "2018-2020",
                "licensePlate": "AB123CD",
                "color": "Silver",
            }
        ],
        "estimatedRepairCostRange": "$1500 - $2500",
        "damagePoints": [
            {
                "partName": "Front bumper",
                "damageType": "Crack",
                "severity": "High",
                "description": "Bumper cover cracked across the left side",
                "recommendedAction": "Replace",
                "boundingBox": [100, 200, 300, 400],
            },
            {
                "partName": "Hood",
                "damageType": "Dent",
                "severity": "Medium",
                "description": "Shallow dent near the leading edge",
                "recommendedAction": "Repair",
            },
        ],
    }
