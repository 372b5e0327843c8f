"""Provider contract: uniform CRUD capability per resource type."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Tuple
from ..utils.errors import ProviderError


def default_is_retryable(error: BaseException) -> bool:
    """Only errors the provider explicitly flagged as transient are retried."""
    return isinstance(error, ProviderError) and error.retryable


@dataclass(frozen=True)
class ProviderCapabilities:
    """What a provider declares about its resource type."""
    updatable_attributes: FrozenSet[str] = frozenset()
    computed_attributes: FrozenSet[str] = frozenset({"id"})
    is_retryable: Callable[[BaseException], bool] = field(default=default_is_retryable, compare=False)

    def requires_replacement(self, attribute: str) -> bool:
        return attribute not in self.updatable_attributes


class Provider(ABC):
    """
    Base class for resource providers.

    Implementations must be safe to call from several worker threads at once;
    each call touches exactly one remote object.
    """

    @abstractmethod
    def create(self, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """Create the object; return (provider_instance_id, resolved attributes)."""
        pass

    def read(self, instance_id: str) -> Dict[str, Any]:
        """
        Return the object's current attributes.

        Raises:
            ResourceNotFoundError: The object no longer exists
            NotImplementedError: The provider cannot detect drift
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, instance_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Update in place; return resolved attributes."""
        pass

    @abstractmethod
    def destroy(self, instance_id: str) -> None:
        """Destroy the object."""
        pass

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities()

    @property
    def supports_read(self) -> bool:
        return type(self).read is not Provider.read
