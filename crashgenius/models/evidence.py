"""Evidence and analysis request data models."""

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class Language(Enum):
    """Target language for generated report content and chat replies."""
    EN = "en"
    RU = "ru"

    @property
    def display_name(self) -> str:
        return "Russian" if self is Language.RU else "English"

    @classmethod
    def parse(cls, value: Any) -> "Language":
        if isinstance(value, Language):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unsupported language: {value!r}")


class ProviderKind(Enum):
    """Closed set of supported LLM backends. GOOGLE is the default provider."""
    GOOGLE = "google"
    MISTRAL = "mistral"

    @classmethod
    def parse(cls, value: Any) -> "ProviderKind":
        if isinstance(value, ProviderKind):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unsupported provider: {value!r}")


@dataclass(frozen=True)
class ImageMetadata:
    """
    Camera metadata parsed from a JPEG's EXIF block.

    Attributes:
        make: Camera manufacturer
        model: Camera model
        captured_at: DateTimeOriginal as written by the camera
        f_number: Aperture formatted as "f/1.8"
        exposure_time: Shutter speed formatted as "1/60" (or seconds)
        iso: ISO speed rating
    """
    make: Optional[str] = None
    model: Optional[str] = None
    captured_at: Optional[str] = None
    f_number: Optional[str] = None
    exposure_time: Optional[str] = None
    iso: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(
            (self.make, self.model, self.captured_at, self.f_number, self.exposure_time, self.iso)
        )

    def to_dict(self) -> Dict[str, str]:
        data = {
            "make": self.make,
            "model": self.model,
            "dateTime": self.captured_at,
            "fNumber": self.f_number,
            "exposureTime": self.exposure_time,
            "iso": self.iso,
        }
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageMetadata":
        return cls(
            make=data.get("make"),
            model=data.get("model"),
            captured_at=data.get("dateTime"),
            f_number=data.get("fNumber"),
            exposure_time=data.get("exposureTime"),
            iso=data.get("iso"),
        )


@dataclass(frozen=True)
class Evidence:
    """
    One normalized uploaded artifact (photo or document).

    Attributes:
        name: Display name (original file name)
        mime_type: MIME type of the content
        payload: Self-describing data URI, "data:<mime>;base64,<...>"
        size_bytes: Size of the raw content in bytes
        modified_at: Last modification time of the source file
        image_metadata: Optional EXIF metadata (JPEG only)
    """
    name: str
    mime_type: str
    payload: str
    size_bytes: int
    modified_at: datetime
    image_metadata: Optional[ImageMetadata] = None

    @property
    def base64_data(self) -> str:
        """Raw base64 content with the data-URI prefix sliced off."""
        _, _, data = self.payload.partition(",")
        return data

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    def raw_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.base64_data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Evidence '{self.name}' has an invalid base64 payload: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "mimeType": self.mime_type,
            "payload": self.payload,
            "sizeBytes": self.size_bytes,
            "modifiedAt": int(self.modified_at.timestamp() * 1000),
        }
        if self.image_metadata is not None:
            data["imageMetadata"] = self.image_metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evidence":
        """Build from the camelCase shape produced by the ingestion collaborator."""
        modified = data.get("modifiedAt")
        if isinstance(modified, datetime):
            modified_at = modified
        elif isinstance(modified, (int, float)):
            modified_at = datetime.fromtimestamp(modified / 1000, tz=timezone.utc)
        else:
            modified_at = datetime.now(timezone.utc)

        metadata = data.get("imageMetadata")
        return cls(
            name=data["name"],
            mime_type=data["mimeType"],
            payload=data["payload"],
            size_bytes=int(data.get("sizeBytes", 0)),
            modified_at=modified_at,
            image_metadata=ImageMetadata.from_dict(metadata) if isinstance(metadata, dict) else None,
        )


@dataclass(frozen=True)
class ProviderSelector:
    """Which backend and model to use; api_key is caller-managed (Mistral)."""
    kind: ProviderKind
    model_id: str
    api_key: Optional[str] = None

    def __repr__(self) -> str:
        key = "set" if self.api_key else "missing"
        return f"ProviderSelector(kind={self.kind.value}, model_id={self.model_id}, api_key={key})"


@dataclass
class AnalysisRequest:
    """
    One user submission, consumed once by an adapter.

    The first evidence item is the reference image for bounding boxes.
    """
    evidence: List[Evidence]
    free_text_context: str
    target_language: Language
    provider: ProviderSelector

    @property
    def primary_evidence(self) -> Optional[Evidence]:
        return self.evidence[0] if self.evidence else None


@dataclass(frozen=True)
class AIModel:
    """An entry of the model picker."""
    id: str
    name: str
    provider: ProviderKind
    description: str
    badge: Optional[str] = None

    def selector(self, api_key: Optional[str] = None) -> ProviderSelector:
        return ProviderSelector(kind=self.provider, model_id=self.id, api_key=api_key)


AVAILABLE_MODELS: List[AIModel] = [
    AIModel(
        id="gemini-3-pro-preview",
        name="Gemini 3 Pro",
        provider=ProviderKind.GOOGLE,
        description="Multimodal reasoning with schema-enforced JSON output",
        badge="Default",
    ),
    AIModel(
        id="pixtral-large-latest",
        name="Pixtral Large",
        provider=ProviderKind.MISTRAL,
        description="Mistral vision model; requires your own API key",
    ),
    AIModel(
        id="mistral-large-latest",
        name="Mistral Large",
        provider=ProviderKind.MISTRAL,
        description="Text-first Mistral model; requires your own API key",
    ),
]


def find_model(model_id: str) -> Optional[AIModel]:
    for model in AVAILABLE_MODELS:
        if model.id == model_id:
            return model
    return None
