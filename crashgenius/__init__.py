"""Multi-provider crash report generation and claim chat."""

from .orchestration.orchestrator import CrashReportOrchestrator
from .plugins import EvidenceNormalizer, UploadedFile, sanitize
from .utils.config import Config
from .utils.hashing import report_hash

__version__ = "0.1.0"

__all__ = [
    "Config",
    "CrashReportOrchestrator",
    "EvidenceNormalizer",
    "UploadedFile",
    "report_hash",
    "sanitize"
]
