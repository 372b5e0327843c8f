"""Provider contract, registry and built-in providers."""

from .base import Provider, ProviderCapabilities, default_is_retryable
from .registry import ProviderRegistry, default_registry

__all__ = [
    "Provider",
    "ProviderCapabilities",
    "ProviderRegistry",
    "default_is_retryable",
    "default_registry",
]
