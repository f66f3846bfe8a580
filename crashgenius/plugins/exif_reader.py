"""EXIF metadata extraction for JPEG evidence."""

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, Optional

from PIL import Image
from PIL.ExifTags import TAGS

from ..models.evidence import ImageMetadata

logger = logging.getLogger(__name__)

# Pointer from IFD0 to the Exif sub-IFD holding exposure settings
EXIF_SUB_IFD = 0x8769


@dataclass(frozen=True)
class MetadataResult:
    """
    Outcome of a best-effort metadata parse.

    Exactly one of metadata/error is meaningful: an ok result may still
    carry metadata=None when the image has no EXIF block. Callers treat an
    error result as "no metadata" and never propagate it.
    """
    metadata: Optional[ImageMetadata] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, metadata: Optional[ImageMetadata]) -> "MetadataResult":
        return cls(metadata=metadata)

    @classmethod
    def failure(cls, error: str) -> "MetadataResult":
        return cls(error=error)


class EXIFReader:
    """
    Extracts camera make/model, capture time, aperture, shutter speed and
    ISO from JPEG bytes using Pillow.
    """

    def read(self, image_bytes: bytes) -> MetadataResult:
        """
        Parse EXIF metadata. Never raises.

        Args:
            image_bytes: Raw JPEG bytes

        Returns:
            MetadataResult; failure results carry the parse error message
        """
        try:
            with Image.open(BytesIO(image_bytes)) as image:
                exif_data = image.getexif()

                if exif_data is None or len(exif_data) == 0:
                    logger.debug("No EXIF data found in image")
                    return MetadataResult.success(None)

                exif_dict: Dict[str, Any] = {}
                for tag_id, value in exif_data.items():
                    exif_dict[TAGS.get(tag_id, tag_id)] = value

                for tag_id, value in exif_data.get_ifd(EXIF_SUB_IFD).items():
                    exif_dict[TAGS.get(tag_id, tag_id)] = value

            metadata = ImageMetadata(
                make=self._text(exif_dict.get('Make')),
                model=self._text(exif_dict.get('Model')),
                captured_at=self._text(exif_dict.get('DateTimeOriginal')),
                f_number=self._format_f_number(exif_dict.get('FNumber')),
                exposure_time=self._format_exposure(exif_dict.get('ExposureTime')),
                iso=self._format_iso(exif_dict.get('ISOSpeedRatings')),
            )

            if metadata.is_empty():
                return MetadataResult.success(None)

            logger.debug(
                f"Extracted EXIF metadata: camera={metadata.make} {metadata.model}, "
                f"captured_at={metadata.captured_at}"
            )
            return MetadataResult.success(metadata)

        except Exception as e:
            return MetadataResult.failure(f"EXIF extraction failed: {e}")

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("ascii", errors="ignore")
        text = str(value).replace("\x00", "").strip()
        return text or None

    @staticmethod
    def _ratio(value: Any) -> Optional[float]:
        if value is None:
            return None
        try:
            if isinstance(value, tuple):
                if value[1] == 0:
                    return None
                return value[0] / value[1]
            number = float(value)
        except (TypeError, ValueError, ZeroDivisionError, IndexError):
            return None
        if number != number or number <= 0:  # NaN from a zero denominator
            return None
        return number

    def _format_exposure(self, value: Any) -> Optional[str]:
        seconds = self._ratio(value)
        if seconds is None:
            return None
        if seconds >= 1:
            return f"{seconds:g}"
        return f"1/{round(1 / seconds)}"

    def _format_f_number(self, value: Any) -> Optional[str]:
        aperture = self._ratio(value)
        if aperture is None:
            return None
        return f"f/{aperture:.1f}"

    @staticmethod
    def _format_iso(value: Any) -> Optional[str]:
        if isinstance(value, (tuple, list)):
            value = value[0] if value else None
        if value is None:
            return None
        try:
            return str(int(value))
        except (TypeError, ValueError):
            return None
