"""Entry point coordinating report generation and chat across providers."""

import logging
import time
from typing import List, Optional

from ..models.evidence import AnalysisRequest, Evidence, Language, ProviderKind, ProviderSelector
from ..models.report import CrashAnalysisResult
from ..providers import ChatSession, ProviderAdapter, get_adapter_class
from ..utils.config import Config
from ..utils.errors import ProviderNotConfigured
from ..utils.hashing import report_hash
from ..utils.http_client import ProviderHttpClient
from ..utils.logging import log_context
from .instructions import build_analysis_instruction

logger = logging.getLogger(__name__)

__all__ = ["CrashReportOrchestrator", "report_hash"]


class CrashReportOrchestrator:
    """
    Selects the provider adapter for each call and hands it the shared
    HTTP transport.

    Credentials are checked before any network I/O: the Google key comes
    from the environment, the Mistral key must come with the selector.

    Attributes:
        config: Loaded configuration
        http: Transport shared by every adapter this orchestrator creates
    """

    def __init__(self, config: Optional[Config] = None, http_client: Optional[ProviderHttpClient] = None):
        """
        Initialize the orchestrator.

        Args:
            config: Configuration; loaded from config.yaml when omitted
            http_client: Transport to share; built from config.http when omitted
        """
        self.config = config or Config.load()
        self._owns_http = http_client is None
        self.http = http_client or ProviderHttpClient(
            timeout=self.config.http.timeout,
            max_retries=self.config.http.max_retries,
        )

        logger.info(f"Initialized CrashReportOrchestrator: default provider={self.config.default_provider}")

    async def __aenter__(self) -> "CrashReportOrchestrator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    def default_selector(self) -> ProviderSelector:
        kind = ProviderKind.parse(self.config.default_provider)
        return ProviderSelector(kind=kind, model_id=self._default_model(kind))

    async def generate_crash_report(
        self,
        evidence: List[Evidence],
        free_text: str,
        language: Language,
        provider_selector: Optional[ProviderSelector] = None
    ) -> CrashAnalysisResult:
        """
        Produce a sanitized crash report from evidence and free-text context.

        Args:
            evidence: Normalized evidence, first item is the bbox reference
            free_text: User-written incident context (may be empty)
            language: Language of the generated content
            provider_selector: Backend and model; the configured default when omitted

        Returns:
            CrashAnalysisResult

        Raises:
            ProviderNotConfigured: Credential missing; raised before any request
            ProviderError: Backend failure (auth, quota, format, protocol, unavailable)
        """
        selector = provider_selector or self.default_selector()
        adapter = self._adapter_for(selector)

        request = AnalysisRequest(
            evidence=list(evidence),
            free_text_context=free_text or "",
            target_language=Language.parse(language),
            provider=selector,
        )
        instruction = build_analysis_instruction(request.target_language, request.evidence)

        with log_context(provider=selector.kind.value, model=adapter.model_id):
            start_time = time.perf_counter()
            logger.info(
                f"Generating crash report: evidence={len(request.evidence)}, language={request.target_language.value}"
            )

            try:
                report = await adapter.generate_report(request, instruction)
            except Exception as e:
                logger.error(f"Crash report generation failed after {time.perf_counter() - start_time:.2f}s: {e}")
                raise

            logger.info(
                f"Crash report ready in {time.perf_counter() - start_time:.2f}s: "
                f"'{report.title}', {len(report.damage_points)} damage points"
            )
            return report

    def create_chat_session(
        self,
        report: CrashAnalysisResult,
        evidence: List[Evidence],
        language: Language,
        provider_selector: Optional[ProviderSelector] = None
    ) -> ChatSession:
        """
        Open a chat session about a report on the selected provider.

        Raises:
            ProviderNotConfigured: Credential missing
        """
        selector = provider_selector or self.default_selector()
        adapter = self._adapter_for(selector)
        session = adapter.create_chat_session(report, list(evidence), Language.parse(language))
        logger.info(f"Opened {selector.kind.value} chat session {session.session_id} for '{report.title}'")
        return session

    def _adapter_for(self, selector: ProviderSelector) -> ProviderAdapter:
        kind = ProviderKind.parse(selector.kind)
        api_key = self._resolve_api_key(kind, selector)
        base_url = self.config.google.base_url if kind is ProviderKind.GOOGLE else self.config.mistral.base_url

        adapter_class = get_adapter_class(kind)
        return adapter_class(
            http=self.http,
            base_url=base_url,
            model_id=selector.model_id or self._default_model(kind),
            api_key=api_key,
        )

    def _resolve_api_key(self, kind: ProviderKind, selector: ProviderSelector) -> str:
        if kind is ProviderKind.GOOGLE:
            key = (selector.api_key or "").strip() or self.config.google.resolve_api_key()
            if not key:
                logger.error(f"Google API key missing from environment ({self.config.google.api_key_env})")
                raise ProviderNotConfigured.missing_environment("google", self.config.google.api_key_env)
            return key

        key = (selector.api_key or "").strip()
        if not key:
            logger.warning(f"{kind.value} selected without an API key")
            raise ProviderNotConfigured.missing_key(kind.value, "an API key is required for this provider")
        return key

    def _default_model(self, kind: ProviderKind) -> str:
        if kind is ProviderKind.GOOGLE:
            return self.config.google.model_id
        return self.config.mistral.model_id
