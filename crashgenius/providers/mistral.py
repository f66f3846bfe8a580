"""Mistral adapter over the OpenAI-style chat completions API."""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from ..models.evidence import AnalysisRequest, Evidence, Language, ProviderKind
from ..models.report import CrashAnalysisResult
from ..orchestration.instructions import (
    EVIDENCE_ACK,
    EVIDENCE_INTRO,
    build_analysis_instruction,
    build_chat_system_instruction,
    build_context_text,
    build_system_instruction,
    json_schema_instruction,
    report_ack,
    report_intro,
)
from ..orchestration.streaming import END_OF_STREAM, StreamFrame
from ..plugins.report_sanitizer import sanitize
from ..utils.errors import ProviderProtocolError, StreamFrameError
from ..utils.http_client import iter_sse_data
from ..utils.response_formatter import ResponseFormatter
from .base import ChatSession, ProviderAdapter

logger = logging.getLogger(__name__)

PROVIDER = "mistral"
SSE_DONE = "[DONE]"


def document_placeholder(evidence: Evidence) -> str:
    return f"[Attached document: {evidence.name} ({evidence.mime_type})]"


def _evidence_parts(evidence: List[Evidence]) -> List[Dict[str, Any]]:
    """Images travel as data URIs; other documents are announced by name only."""
    parts: List[Dict[str, Any]] = []
    for item in evidence:
        if item.is_image:
            parts.append({"type": "image_url", "image_url": item.payload})
        else:
            parts.append({"type": "text", "text": document_placeholder(item)})
    return parts


def _content_text(content: Any) -> str:
    """Message content is either a string or a list of typed chunks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            chunk["text"]
            for chunk in content
            if isinstance(chunk, dict) and chunk.get("type", "text") == "text" and isinstance(chunk.get("text"), str)
        )
    return ""


class MistralAdapter(ProviderAdapter):
    """
    Mistral backend. JSON mode only guarantees valid JSON, not the report
    shape, so the schema is sent as an instruction and the sanitizer does
    the rest.
    """

    kind = ProviderKind.MISTRAL

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def generate_report(
        self,
        request: AnalysisRequest,
        instruction: Optional[str] = None
    ) -> CrashAnalysisResult:
        instruction = instruction or build_analysis_instruction(request.target_language, request.evidence)

        user_content: List[Dict[str, Any]] = [{"type": "text", "text": instruction}]
        user_content.extend(_evidence_parts(request.evidence))
        if request.free_text_context.strip():
            user_content.append({"type": "text", "text": build_context_text(request.free_text_context)})

        system_prompt = f"{build_system_instruction(request.target_language)}\n\n{json_schema_instruction()}"
        payload = {
            "model": self.model_id,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "response_format": {"type": "json_object"},
            "stream": False,
        }

        logger.info(f"Requesting Mistral report: model={self.model_id}, evidence={len(request.evidence)}")
        data = await self.http.post_json(
            self.completions_url,
            payload,
            self._headers(),
            provider=PROVIDER,
            operation="generate_report",
        )

        return sanitize(self._decode_report(self._completion_text(data)))

    @staticmethod
    def _completion_text(data: Dict[str, Any]) -> str:
        choices = data.get("choices") if isinstance(data, dict) else None
        choice = choices[0] if isinstance(choices, list) and choices else None
        message = choice.get("message") if isinstance(choice, dict) else None
        text = _content_text(message.get("content") if isinstance(message, dict) else None).strip()
        if not text:
            raise ProviderProtocolError.build(
                provider=PROVIDER,
                message="No content received from Mistral",
                operation="generate_report"
            )
        return text

    @staticmethod
    def _decode_report(text: str) -> Any:
        stripped = ResponseFormatter.strip_code_fences(text)
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            pass

        extracted = ResponseFormatter.extract_json_from_response(text)
        if extracted is None:
            logger.error(f"Could not decode Mistral report JSON: {text[:200]}")
            raise ProviderProtocolError.build(
                provider=PROVIDER,
                message="Mistral returned a response that is not valid JSON",
                operation="generate_report"
            )
        logger.debug("Recovered Mistral report JSON embedded in surrounding text")
        return extracted

    def create_chat_session(
        self,
        report: CrashAnalysisResult,
        evidence: List[Evidence],
        language: Language
    ) -> "MistralChatSession":
        return MistralChatSession(self, report, evidence, language)


class MistralChatSession(ChatSession):
    """Mistral chat thread; history is the OpenAI-style messages list."""

    provider_name = PROVIDER

    def __init__(
        self,
        adapter: MistralAdapter,
        report: CrashAnalysisResult,
        evidence: List[Evidence],
        language: Language
    ):
        super().__init__(report, language)
        self._adapter = adapter
        self.messages: List[Dict[str, Any]] = [
            {"role": "system", "content": build_chat_system_instruction(language)}
        ]

        images = [item for item in evidence if item.is_image]
        if images:
            self.messages.append({
                "role": "user",
                "content": [{"type": "text", "text": EVIDENCE_INTRO}] + _evidence_parts(images),
            })
            self.messages.append({"role": "assistant", "content": EVIDENCE_ACK})

        self.messages.append({"role": "user", "content": report_intro(report)})
        self.messages.append({"role": "assistant", "content": report_ack(report)})

    async def _stream_reply(self, text: str) -> AsyncIterator[StreamFrame]:
        payload = {
            "model": self._adapter.model_id,
            "messages": self.messages + [{"role": "user", "content": text}],
            "stream": True,
        }
        lines = self._adapter.http.stream_lines(
            self._adapter.completions_url,
            payload,
            self._adapter._headers(),
            provider=PROVIDER,
            operation="chat",
        )

        try:
            async for data in iter_sse_data(lines):
                if data.strip() == SSE_DONE:
                    yield END_OF_STREAM
                    break
                try:
                    delta = self._delta_text(data)
                except StreamFrameError as e:
                    logger.warning(str(e))
                    continue
                if delta:
                    yield StreamFrame(text=delta)
        finally:
            await lines.aclose()

    @staticmethod
    def _delta_text(data: str) -> str:
        try:
            chunk = json.loads(data)
            if not isinstance(chunk, dict):
                raise ValueError("frame is not an object")
            choices = chunk.get("choices") or []
            if not isinstance(choices, list):
                raise ValueError("choices is not a list")
            if not choices:
                return ""
            if not isinstance(choices[0], dict):
                raise ValueError("choice is not an object")
            delta = choices[0].get("delta") or {}
            if not isinstance(delta, dict):
                raise ValueError("delta is not an object")
        except ValueError as e:
            raise StreamFrameError.malformed(PROVIDER, data, e)
        return _content_text(delta.get("content"))

    def _commit_turn(self, user_text: str, reply_text: str) -> None:
        self.messages.append({"role": "user", "content": user_text})
        self.messages.append({"role": "assistant", "content": reply_text})
