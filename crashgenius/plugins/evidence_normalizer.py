"""Turn uploaded files into uniform Evidence records."""

import base64
import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..models.evidence import Evidence
from ..utils.errors import EvidenceReadError
from .exif_reader import EXIFReader

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
EXIF_MIME_TYPES = frozenset({"image/jpeg", "image/jpg"})

# Leading bytes of the formats the capture surface accepts
_MAGIC_NUMBERS = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF-", "application/pdf"),
)


@dataclass
class UploadedFile:
    """
    A file as handed over by the ingestion collaborator.

    Attributes:
        name: Original file name
        content: Raw bytes
        mime_type: Declared MIME type, if the client sent one
        modified_at: Last modification time reported by the client
    """
    name: str
    content: bytes
    mime_type: Optional[str] = None
    modified_at: Optional[datetime] = None


FileInput = Union[str, Path, UploadedFile]


class EvidenceNormalizer:
    """
    Reads a file, encodes it as a data URI and attaches camera metadata
    for JPEG photos. Metadata extraction is best-effort; read failures are not.
    """

    def __init__(self, exif_reader: Optional[EXIFReader] = None):
        self.exif_reader = exif_reader or EXIFReader()

    def normalize(self, file: FileInput) -> Evidence:
        """
        Normalize one file.

        Args:
            file: Filesystem path or UploadedFile

        Returns:
            Evidence with a "data:<mime>;base64,<...>" payload

        Raises:
            EvidenceReadError: If the file content cannot be read
        """
        if isinstance(file, UploadedFile):
            name = file.name
            content = file.content
            declared = file.mime_type
            modified_at = file.modified_at or datetime.now(timezone.utc)
            if not isinstance(content, (bytes, bytearray)):
                raise EvidenceReadError.read_failed(
                    name, TypeError(f"expected bytes, got {type(content).__name__}")
                )
            content = bytes(content)
        else:
            path = Path(file)
            name = path.name
            declared = None
            try:
                content = path.read_bytes()
                modified_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            except OSError as e:
                raise EvidenceReadError.read_failed(str(path), e) from e

        mime_type = self.detect_mime_type(name, content, declared)
        encoded = base64.b64encode(content).decode("ascii")

        image_metadata = None
        if mime_type in EXIF_MIME_TYPES:
            result = self.exif_reader.read(content)
            if result.ok:
                image_metadata = result.metadata
            else:
                logger.warning(f"Could not read EXIF metadata from {name}: {result.error}")

        evidence = Evidence(
            name=name,
            mime_type=mime_type,
            payload=f"data:{mime_type};base64,{encoded}",
            size_bytes=len(content),
            modified_at=modified_at,
            image_metadata=image_metadata,
        )
        logger.debug(f"Normalized evidence {name}: {mime_type}, {len(content)} bytes")
        return evidence

    def normalize_many(self, files: Iterable[FileInput]) -> List[Evidence]:
        """Normalize files preserving order; the first is the bbox reference image."""
        return [self.normalize(file) for file in files]

    @staticmethod
    def detect_mime_type(name: str, content: bytes, declared: Optional[str] = None) -> str:
        if declared and declared.strip():
            return declared.strip().lower()

        guessed, _ = mimetypes.guess_type(name)
        if guessed:
            return guessed

        for magic, mime_type in _MAGIC_NUMBERS:
            if content.startswith(magic):
                return mime_type
        if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
            return "image/webp"

        return DEFAULT_MIME_TYPE
