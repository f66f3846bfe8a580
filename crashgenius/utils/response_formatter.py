"""JSON extraction helpers for providers without server-enforced schemas."""

import json
import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ResponseFormatter:
    """
    Utility class for pulling a JSON object out of raw completion text.

    Chat-completion models are asked for bare JSON but regularly wrap it in
    Markdown fences or surround it with prose; these helpers undo that.
    """

    _FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*[ \t]*\r?\n?(.*?)\r?\n?```$", re.DOTALL)

    @staticmethod
    def strip_code_fences(response_text: str) -> str:
        """
        Remove a Markdown code fence wrapping the whole response.

        "```json\\n{...}\\n```" and "```\\n{...}\\n```" both become "{...}";
        text without a surrounding fence is returned stripped but unchanged.
        """
        if not response_text:
            return ""

        text = response_text.strip()
        match = ResponseFormatter._FENCE_PATTERN.match(text)
        if match:
            return match.group(1).strip()

        # Unterminated fence (truncated completion)
        if text.startswith("```"):
            first_newline = text.find("\n")
            text = text[first_newline + 1:] if first_newline != -1 else text[3:]
            if text.endswith("```"):
                text = text[:-3]
            return text.strip()

        return text

    @staticmethod
    def extract_json_from_response(response_text: str) -> Optional[Dict[str, Any]]:
        """
        Extract a JSON object from a completion.

        Tries in order:
        1. The response with any wrapping code fence removed
        2. A fenced block anywhere in the text
        3. The first complete JSON object embedded in prose

        Args:
            response_text: Raw response text that may contain JSON

        Returns:
            Parsed JSON dictionary, or None if no valid JSON object found
        """
        if not response_text or not response_text.strip():
            logger.warning("Empty response text provided")
            return None

        text = response_text.strip()

        json_data = ResponseFormatter._extract_raw_json(ResponseFormatter.strip_code_fences(text))
        if json_data is not None:
            return json_data

        json_data = ResponseFormatter._extract_markdown_json(text)
        if json_data is not None:
            logger.debug("Extracted JSON from inner markdown code block")
            return json_data

        json_data = ResponseFormatter._extract_embedded_json(text)
        if json_data is not None:
            logger.debug("Extracted JSON object embedded in prose")
            return json_data

        logger.warning(f"Failed to extract JSON from response: {text[:200]}...")
        return None

    @staticmethod
    def _extract_markdown_json(text: str) -> Optional[Dict[str, Any]]:
        patterns = [
            r'```json\s*\n(.*?)\n\s*```',
            r'```\s*\n(.*?)\n\s*```'
        ]

        for pattern in patterns:
            match = re.search(pattern, text, re.DOTALL)
            if match:
                json_data = ResponseFormatter._extract_raw_json(match.group(1).strip())
                if json_data is not None:
                    return json_data

        return None

    @staticmethod
    def _extract_raw_json(text: str) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, ValueError):
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _extract_embedded_json(text: str) -> Optional[Dict[str, Any]]:
        """Find the first balanced {...} that decodes, using brace counting."""
        start_idx = text.find('{')
        while start_idx != -1:
            brace_count = 0
            in_string = False
            escape_next = False
            end_idx = -1

            for i in range(start_idx, len(text)):
                char = text[i]
                if escape_next:
                    escape_next = False
                    continue
                if char == '\\':
                    escape_next = True
                    continue
                if char == '"':
                    in_string = not in_string
                    continue
                if in_string:
                    continue
                if char == '{':
                    brace_count += 1
                elif char == '}':
                    brace_count -= 1
                    if brace_count == 0:
                        end_idx = i
                        break

            if end_idx == -1:
                return None

            json_data = ResponseFormatter._extract_raw_json(text[start_idx:end_idx + 1])
            if json_data is not None:
                return json_data

            start_idx = text.find('{', start_idx + 1)

        return None
