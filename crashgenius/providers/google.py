"""Google Gemini adapter over the Generative Language REST API."""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from ..models.evidence import AnalysisRequest, Evidence, Language, ProviderKind
from ..models.report import CrashAnalysisResult
from ..orchestration.instructions import (
    CRASH_REPORT_SCHEMA,
    EVIDENCE_ACK,
    EVIDENCE_INTRO,
    build_analysis_instruction,
    build_chat_system_instruction,
    build_context_text,
    build_system_instruction,
    report_ack,
    report_intro,
)
from ..orchestration.streaming import END_OF_STREAM, StreamFrame
from ..plugins.report_sanitizer import sanitize
from ..utils.errors import ProviderProtocolError, StreamFrameError
from ..utils.http_client import iter_sse_data
from .base import ChatSession, ProviderAdapter

logger = logging.getLogger(__name__)

PROVIDER = "google"


def _inline_part(evidence: Evidence) -> Dict[str, Any]:
    return {"inlineData": {"mimeType": evidence.mime_type, "data": evidence.base64_data}}


def _text_part(text: str) -> Dict[str, Any]:
    return {"text": text}


def _first_candidate(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the first candidate, or None when the response has none."""
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ValueError("candidates is not a list")
    if not candidates:
        return None
    if not isinstance(candidates[0], dict):
        raise ValueError("candidate is not an object")
    return candidates[0]


def _candidate_text(candidate: Dict[str, Any]) -> str:
    """Concatenate the answer text of a candidate, skipping thought parts."""
    content = candidate.get("content") or {}
    if not isinstance(content, dict):
        raise ValueError("candidate content is not an object")
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise ValueError("content parts is not a list")
    return "".join(
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str) and not part.get("thought")
    )


class GoogleAdapter(ProviderAdapter):
    """
    Gemini backend with schema-enforced JSON output.

    The report schema is passed as generationConfig.responseSchema so the
    model is constrained to the report shape; the result still goes
    through the sanitizer.
    """

    kind = ProviderKind.GOOGLE

    def _url(self, method: str) -> str:
        return f"{self.base_url}/models/{self.model_id}:{method}"

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self._api_key}

    async def generate_report(
        self,
        request: AnalysisRequest,
        instruction: Optional[str] = None
    ) -> CrashAnalysisResult:
        instruction = instruction or build_analysis_instruction(request.target_language, request.evidence)

        parts: List[Dict[str, Any]] = [_text_part(instruction)]
        parts.extend(_inline_part(item) for item in request.evidence)
        if request.free_text_context.strip():
            parts.append(_text_part(build_context_text(request.free_text_context)))

        payload = {
            "systemInstruction": {"parts": [_text_part(build_system_instruction(request.target_language))]},
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": CRASH_REPORT_SCHEMA,
            },
        }

        logger.info(f"Requesting Gemini report: model={self.model_id}, evidence={len(request.evidence)}")
        data = await self.http.post_json(
            self._url("generateContent"),
            payload,
            self._headers(),
            provider=PROVIDER,
            operation="generate_report",
        )

        text = self._response_text(data)
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as e:
            raise ProviderProtocolError.build(
                provider=PROVIDER,
                message=f"Gemini returned invalid JSON: {e}",
                operation="generate_report",
                original_exception=e
            )

        return sanitize(decoded)

    @staticmethod
    def _response_text(data: Dict[str, Any]) -> str:
        try:
            candidate = _first_candidate(data)
            text = _candidate_text(candidate).strip() if candidate else ""
        except (AttributeError, ValueError) as e:
            raise ProviderProtocolError.build(
                provider=PROVIDER,
                message=f"Gemini returned a malformed response: {e}",
                operation="generate_report",
                original_exception=e
            )

        if candidate is None:
            feedback = data.get("promptFeedback")
            block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if block_reason:
                raise ProviderProtocolError.build(
                    provider=PROVIDER,
                    message=f"Gemini blocked the request: {block_reason}",
                    operation="generate_report"
                )
            raise ProviderProtocolError.build(
                provider=PROVIDER,
                message="Gemini returned no candidates",
                operation="generate_report"
            )

        if not text:
            finish_reason = candidate.get("finishReason", "unknown")
            raise ProviderProtocolError.build(
                provider=PROVIDER,
                message=f"Empty response from Gemini (finishReason={finish_reason})",
                operation="generate_report"
            )
        return text

    def create_chat_session(
        self,
        report: CrashAnalysisResult,
        evidence: List[Evidence],
        language: Language
    ) -> "GoogleChatSession":
        return GoogleChatSession(self, report, evidence, language)


class GoogleChatSession(ChatSession):
    """Gemini chat thread; history is kept as Gemini "contents" entries."""

    provider_name = PROVIDER

    def __init__(
        self,
        adapter: GoogleAdapter,
        report: CrashAnalysisResult,
        evidence: List[Evidence],
        language: Language
    ):
        super().__init__(report, language)
        self._adapter = adapter
        self._system_instruction = build_chat_system_instruction(language)
        self.history: List[Dict[str, Any]] = []

        if evidence:
            self.history.append({
                "role": "user",
                "parts": [_inline_part(item) for item in evidence] + [_text_part(EVIDENCE_INTRO)],
            })
            self.history.append({"role": "model", "parts": [_text_part(EVIDENCE_ACK)]})

        self.history.append({"role": "user", "parts": [_text_part(report_intro(report))]})
        self.history.append({"role": "model", "parts": [_text_part(report_ack(report))]})

        logger.debug(f"Seeded Gemini chat {self.session_id} with {len(self.history)} turns")

    async def _stream_reply(self, text: str) -> AsyncIterator[StreamFrame]:
        payload = {
            "systemInstruction": {"parts": [_text_part(self._system_instruction)]},
            "contents": self.history + [{"role": "user", "parts": [_text_part(text)]}],
        }
        lines = self._adapter.http.stream_lines(
            self._adapter._url("streamGenerateContent") + "?alt=sse",
            payload,
            self._adapter._headers(),
            provider=PROVIDER,
            operation="chat",
        )

        try:
            async for data in iter_sse_data(lines):
                try:
                    delta, finished = self._decode_chunk(data)
                except StreamFrameError as e:
                    logger.warning(str(e))
                    continue

                if delta:
                    yield StreamFrame(text=delta)
                if finished:
                    yield END_OF_STREAM
        finally:
            await lines.aclose()

    @staticmethod
    def _decode_chunk(data: str) -> Tuple[str, bool]:
        """Return the text delta of one SSE chunk and whether it carries a finishReason."""
        try:
            chunk = json.loads(data)
            if not isinstance(chunk, dict):
                raise ValueError("frame is not an object")
            candidate = _first_candidate(chunk)
            if candidate is None:
                return "", False
            return _candidate_text(candidate), bool(candidate.get("finishReason"))
        except ValueError as e:
            raise StreamFrameError.malformed(PROVIDER, data, e)

    def _commit_turn(self, user_text: str, reply_text: str) -> None:
        self.history.append({"role": "user", "parts": [_text_part(user_text)]})
        self.history.append({"role": "model", "parts": [_text_part(reply_text)]})
