"""Evidence ingestion and report repair plugins."""

from .evidence_normalizer import EvidenceNormalizer, UploadedFile
from .exif_reader import EXIFReader, MetadataResult
from .report_sanitizer import ReportSanitizer, sanitize

__all__ = [
    'EvidenceNormalizer',
    'UploadedFile',
    'EXIFReader',
    'MetadataResult',
    'ReportSanitizer',
    'sanitize'
]
