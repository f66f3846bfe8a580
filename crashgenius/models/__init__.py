"""Domain data models for evidence, reports, and chat."""

from .chat import ChatMessage, ChatRole
from .evidence import (
    AIModel,
    AVAILABLE_MODELS,
    AnalysisRequest,
    Evidence,
    ImageMetadata,
    Language,
    ProviderKind,
    ProviderSelector,
    find_model,
)
from .report import (
    BoundingBox,
    CrashAnalysisResult,
    DamageItem,
    RenderRegion,
    Severity,
    VehicleDetails,
)

__all__ = [
    "AIModel",
    "AVAILABLE_MODELS",
    "AnalysisRequest",
    "BoundingBox",
    "ChatMessage",
    "ChatRole",
    "CrashAnalysisResult",
    "DamageItem",
    "Evidence",
    "ImageMetadata",
    "Language",
    "ProviderKind",
    "ProviderSelector",
    "RenderRegion",
    "Severity",
    "VehicleDetails",
    "find_model",
]
