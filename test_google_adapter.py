"""Tests for the Gemini adapter: request shape, response handling and chat streaming."""

import json

import httpx
import pytest

from conftest import sse_body
from crashgenius.models import AnalysisRequest, Language, ProviderKind, ProviderSelector
from crashgenius.orchestration.instructions import CRASH_REPORT_SCHEMA, build_analysis_instruction
from crashgenius.plugins.report_sanitizer import sanitize
from crashgenius.providers.google import GoogleAdapter
from crashgenius.utils.errors import ProviderAuthError, ProviderProtocolError

BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
MODEL = "gemini-3-pro-preview"


def gemini_response(text, **candidate_fields):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}, **candidate_fields}]}


def make_adapter(http):
    return GoogleAdapter(http=http, base_url=BASE_URL, model_id=MODEL, api_key="google-key")


def make_request(evidence, free_text="", language=Language.EN):
    return AnalysisRequest(
        evidence=evidence,
        free_text_context=free_text,
        target_language=language,
        provider=ProviderSelector(ProviderKind.GOOGLE, MODEL),
    )


@pytest.mark.asyncio
async def test_generate_report_end_to_end(make_http, photo_evidence, police_report_evidence, report_payload):
    http, recorder = make_http(lambda request: httpx.Response(200, json=gemini_response(json.dumps(report_payload))))
    adapter = make_adapter(http)

    report = await adapter.generate_report(
        make_request([photo_evidence, police_report_evidence], free_text="Hit at a red light")
    )

    assert report == sanitize(report_payload)

    request = recorder.requests[0]
    assert str(request.url) == f"{BASE_URL}/models/{MODEL}:generateContent"
    assert request.headers["x-goog-api-key"] == "google-key"

    body = recorder.json_body()
    parts = body["contents"][0]["parts"]
    assert parts[0]["text"] == build_analysis_instruction(Language.EN, [photo_evidence, police_report_evidence])
    assert parts[1] == {"inlineData": {"mimeType": "image/jpeg", "data": photo_evidence.base64_data}}
    assert parts[2]["inlineData"]["mimeType"] == "application/pdf"
    assert parts[3] == {"text": "Additional Incident/Document Context: Hit at a red light"}
    assert body["generationConfig"] == {
        "responseMimeType": "application/json",
        "responseSchema": CRASH_REPORT_SCHEMA,
    }
    assert "English" in body["systemInstruction"]["parts"][0]["text"]


@pytest.mark.asyncio
async def test_instruction_names_first_evidence_and_language(make_http, photo_evidence):
    http, recorder = make_http(lambda request: httpx.Response(200, json=gemini_response("{}")))

    await make_adapter(http).generate_report(make_request([photo_evidence], language=Language.RU))

    instruction = recorder.json_body()["contents"][0]["parts"][0]["text"]
    assert "front.jpg" in instruction
    assert "Russian" in instruction
    assert "Not Visible" in instruction


@pytest.mark.asyncio
async def test_schema_conformant_output_with_missing_optional_fields(make_http, photo_evidence):
    payload = {"title": "Scrape", "summary": "Minor scrape", "vehiclesInvolved": [], "estimatedRepairCostRange": "$200", "damagePoints": []}
    http, _ = make_http(lambda request: httpx.Response(200, json=gemini_response(json.dumps(payload))))

    report = await make_adapter(http).generate_report(make_request([photo_evidence]))

    assert report.to_dict() == payload
    assert report.identified_vehicles is None


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    gemini_response(""),
    gemini_response("not json"),
    {"candidates": []},
    {"promptFeedback": {"blockReason": "SAFETY"}},
    {"candidates": [{"content": "x"}]},
    {"candidates": "none"},
    [gemini_response("{}")],
])
async def test_unusable_responses_raise_protocol_error(make_http, photo_evidence, body):
    http, _ = make_http(lambda request: httpx.Response(200, json=body))

    with pytest.raises(ProviderProtocolError):
        await make_adapter(http).generate_report(make_request([photo_evidence]))


@pytest.mark.asyncio
async def test_invalid_key_maps_to_auth_error(make_http, photo_evidence):
    body = {"error": {"code": 400, "message": "API key not valid. Please pass a valid API key.", "status": "INVALID_ARGUMENT"}}
    http, _ = make_http(lambda request: httpx.Response(400, json=body))

    with pytest.raises(ProviderAuthError):
        await make_adapter(http).generate_report(make_request([photo_evidence]))


def test_chat_history_is_seeded_with_evidence_and_digest(make_http, photo_evidence, report_payload):
    http, _ = make_http(lambda request: httpx.Response(200))
    report = sanitize(report_payload)

    session = make_adapter(http).create_chat_session(report, [photo_evidence], Language.EN)

    assert [turn["role"] for turn in session.history] == ["user", "model", "user", "model"]
    assert session.history[0]["parts"][0]["inlineData"]["mimeType"] == "image/jpeg"
    digest = session.history[2]["parts"][0]["text"]
    assert "CURRENT CRASH REPORT CONTEXT" in digest
    assert "[High] Front bumper (Crack)" in digest
    assert "AB123CD" in digest
    assert report.title in session.history[3]["parts"][0]["text"]
    assert len(session.transcript) == 0


def test_chat_without_evidence_seeds_digest_only(make_http, report_payload):
    http, _ = make_http(lambda request: httpx.Response(200))
    session = make_adapter(http).create_chat_session(sanitize(report_payload), [], Language.EN)
    assert len(session.history) == 2


@pytest.mark.asyncio
async def test_chat_stream_yields_deltas_and_commits(make_http, photo_evidence, report_payload):
    body = sse_body(
        gemini_response("The bumper "),
        "{broken",
        gemini_response("needs replacing.", finishReason="STOP"),
    )
    http, recorder = make_http(lambda request: httpx.Response(200, content=body))
    session = make_adapter(http).create_chat_session(sanitize(report_payload), [photo_evidence], Language.EN)

    stream = session.send_message_stream("What about the bumper?")
    fragments = [fragment async for fragment in stream]

    assert fragments == ["The bumper ", "needs replacing."]
    assert stream.completed
    assert str(recorder.requests[0].url).endswith(f"models/{MODEL}:streamGenerateContent?alt=sse")
    sent = recorder.json_body()
    assert sent["contents"][-1] == {"role": "user", "parts": [{"text": "What about the bumper?"}]}
    assert "CarCrashGenius" in sent["systemInstruction"]["parts"][0]["text"]

    assert session.history[-2] == {"role": "user", "parts": [{"text": "What about the bumper?"}]}
    assert session.history[-1] == {"role": "model", "parts": [{"text": "The bumper needs replacing."}]}
    assert [message.text for message in session.transcript.messages] == [
        "What about the bumper?",
        "The bumper needs replacing.",
    ]
    assert not session.busy


@pytest.mark.asyncio
@pytest.mark.parametrize("frame", [
    {"candidates": [{"content": "x"}]},
    {"candidates": [{"content": {"parts": "x"}}]},
    {"candidates": ["x"]},
    {"candidates": 5},
    [1, 2],
])
async def test_structurally_malformed_chunk_is_skipped(make_http, report_payload, frame):
    body = sse_body(
        gemini_response("Hel"),
        frame,
        gemini_response("lo", finishReason="STOP"),
    )
    http, _ = make_http(lambda request: httpx.Response(200, content=body))
    session = make_adapter(http).create_chat_session(sanitize(report_payload), [], Language.EN)

    stream = session.send_message_stream("Is it safe to drive?")

    assert await stream.collect() == "Hello"
    assert stream.completed
    assert session.history[-1] == {"role": "model", "parts": [{"text": "Hello"}]}


@pytest.mark.asyncio
async def test_thought_parts_are_not_streamed(make_http, report_payload):
    chunk = {"candidates": [{"content": {"parts": [
        {"text": "thinking...", "thought": True},
        {"text": "Answer"},
        {"text": 7},
    ]}, "finishReason": "STOP"}]}
    http, _ = make_http(lambda request: httpx.Response(200, content=sse_body(chunk)))
    session = make_adapter(http).create_chat_session(sanitize(report_payload), [], Language.EN)

    assert await session.send_message_stream("Why?").collect() == "Answer"
