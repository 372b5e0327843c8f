"""Registry mapping resource types to provider implementations."""

from typing import Dict, FrozenSet, List, Optional
from ..utils.errors import ProviderNotFoundError
from ..utils.logging import get_logger
from .base import Provider, ProviderCapabilities

logger = get_logger("providers.registry")


class ProviderRegistry:
    """Resource type -> provider. The only extension point of the engine."""

    def __init__(self, providers: Optional[Dict[str, Provider]] = None):
        self._providers: Dict[str, Provider] = {}
        for resource_type, provider in (providers or {}).items():
            self.register(resource_type, provider)

    def register(self, resource_type: str, provider: Provider) -> None:
        if resource_type in self._providers:
            logger.warning(f"Replacing provider registered for {resource_type}")
        self._providers[resource_type] = provider
        logger.debug(f"Registered provider for {resource_type}: {type(provider).__name__}")

    def get(self, resource_type: str) -> Provider:
        provider = self._providers.get(resource_type)
        if provider is None:
            available = ", ".join(self.types()) or "none"
            raise ProviderNotFoundError(
                f"No provider registered for resource type '{resource_type}'. "
                f"Available types: {available}"
            )
        return provider

    def capabilities(self, resource_type: str) -> ProviderCapabilities:
        return self.get(resource_type).capabilities()

    def computed_attributes(self, resource_type: str) -> FrozenSet[str]:
        return self.capabilities(resource_type).computed_attributes

    def types(self) -> List[str]:
        return sorted(self._providers)

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._providers


def default_registry() -> ProviderRegistry:
    """Registry with the built-in local providers."""
    from .local import LocalFileProvider, NullResourceProvider

    return ProviderRegistry({
        "local_file": LocalFileProvider(),
        "null_resource": NullResourceProvider(),
    })
