"""Content hashing for report certification."""

import hashlib
import json
from typing import Any, Dict, Union

from ..models.report import CrashAnalysisResult


def canonical_json(report: Union[CrashAnalysisResult, Dict[str, Any]]) -> str:
    """Serialize a report compactly, keeping the key order of to_dict()."""
    data = report.to_dict() if isinstance(report, CrashAnalysisResult) else report
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def report_hash(report: Union[CrashAnalysisResult, Dict[str, Any]]) -> str:
    """
    SHA-256 hex digest of the JSON-serialized report.

    Pure function: the same report always yields the same digest and
    nothing outside the return value is touched.
    """
    return hashlib.sha256(canonical_json(report).encode("utf-8")).hexdigest()
