"""Utility modules for configuration, logging, errors, and HTTP transport."""

from .hashing import report_hash
from .http_client import ProviderHttpClient
from .response_formatter import ResponseFormatter

__all__ = [
    'ProviderHttpClient',
    'ResponseFormatter',
    'report_hash'
]
