"""LLM provider adapters and the registry that selects them."""

from typing import Dict, Type

from ..models.evidence import ProviderKind
from .base import ChatSession, ProviderAdapter
from .google import GoogleAdapter, GoogleChatSession
from .mistral import MistralAdapter, MistralChatSession

ADAPTERS: Dict[ProviderKind, Type[ProviderAdapter]] = {
    ProviderKind.GOOGLE: GoogleAdapter,
    ProviderKind.MISTRAL: MistralAdapter,
}


def get_adapter_class(kind: ProviderKind) -> Type[ProviderAdapter]:
    """Look up the adapter class for a provider variant."""
    try:
        return ADAPTERS[ProviderKind.parse(kind)]
    except KeyError:
        raise ValueError(f"No adapter registered for provider: {kind!r}")


__all__ = [
    'ADAPTERS',
    'ChatSession',
    'GoogleAdapter',
    'GoogleChatSession',
    'MistralAdapter',
    'MistralChatSession',
    'ProviderAdapter',
    'get_adapter_class'
]
