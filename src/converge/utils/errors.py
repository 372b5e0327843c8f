"""Custom exception classes for converge."""

from typing import Any, Dict, List, Optional


class ConvergeError(Exception):
    """Base exception for all converge errors."""

    def __init__(self, message: str, node_id: Optional[str] = None):
        super().__init__(message)
        self.node_id = node_id


class ConfigError(ConvergeError):
    """Raised when engine configuration is invalid or missing."""
    pass


class ConfigLoadError(ConvergeError):
    """Raised when a resource configuration document cannot be loaded."""
    pass


class GraphConstructionError(ConvergeError):
    """Raised when the resource graph cannot be built."""
    pass


class DuplicateIdError(GraphConstructionError):
    """Raised when two resources share the same id."""

    def __init__(self, node_id: str):
        super().__init__(f"Duplicate resource id: {node_id}", node_id=node_id)


class UnresolvedReferenceError(GraphConstructionError):
    """Raised when a reference points to a missing resource or attribute."""

    def __init__(self, node_id: str, reference: str, reason: str = "resource is not declared"):
        super().__init__(
            f"Resource {node_id} references {reference}, but {reason}",
            node_id=node_id
        )
        self.reference = reference


class CycleError(GraphConstructionError):
    """Raised when resource dependencies form a cycle."""

    def __init__(self, cycle: List[str]):
        path = " -> ".join(cycle)
        super().__init__(f"Dependency cycle detected: {path}", node_id=cycle[0] if cycle else None)
        self.cycle = cycle


class StateError(ConvergeError):
    """Base class for state store failures."""
    pass


class CorruptStateError(StateError):
    """Raised when the state snapshot cannot be parsed or fails its checksum."""
    pass


class LockHeldError(StateError):
    """Raised when another cycle holds the state lock."""

    def __init__(self, lock_path: str, info: Optional[Dict[str, Any]] = None):
        info = info or {}
        holder = ", ".join(f"{k}={v}" for k, v in sorted(info.items())) or "unknown holder"
        super().__init__(f"State is locked ({lock_path}): {holder}")
        self.lock_path = lock_path
        self.info = info


class PlanningError(ConvergeError):
    """Base class for planning failures."""
    pass


class DestroyPreventedError(PlanningError):
    """Raised when a plan would destroy a resource with prevent_destroy set."""

    def __init__(self, node_ids: List[str]):
        names = ", ".join(node_ids)
        super().__init__(
            f"Plan would destroy {names}, which has lifecycle.prevent_destroy set. "
            "Remove the flag or change the configuration so the resource is kept.",
            node_id=node_ids[0] if node_ids else None
        )
        self.node_ids = node_ids


class AmbiguousOrderError(PlanningError):
    """Raised when planned actions cannot be ordered (internal invariant violation)."""

    def __init__(self, cycle: List[str]):
        super().__init__(
            f"Internal error: planned actions form a cycle: {' -> '.join(cycle)}",
            node_id=cycle[0] if cycle else None
        )
        self.cycle = cycle


class StalePlanError(PlanningError):
    """Raised when state changed between planning and applying."""
    pass


class PlanFileError(PlanningError):
    """Raised when a saved plan file cannot be read or written."""
    pass


class ProviderNotFoundError(ConvergeError):
    """Raised when no provider is registered for a resource type."""
    pass


class ProviderError(ConvergeError):
    """
    Raised by providers when an operation fails.

    Args:
        message: Human-readable cause
        retryable: Whether the failure is transient
        instance_id: Set when a remote object may exist despite the failure
    """

    def __init__(self, message: str, retryable: bool = False,
                 instance_id: Optional[str] = None, node_id: Optional[str] = None):
        super().__init__(message, node_id=node_id)
        self.retryable = retryable
        self.instance_id = instance_id


class ResourceNotFoundError(ProviderError):
    """Raised by provider reads when the remote object no longer exists."""
    pass


class ApplyError(ConvergeError):
    """Raised when an apply did not complete; carries every action's outcome."""

    def __init__(self, result):
        failed = [o.node_id for o in result.failed]
        if result.cancelled and not failed:
            message = f"Apply cancelled: {len(result.skipped)} action(s) skipped"
        else:
            message = (
                f"Apply failed for {', '.join(failed)} "
                f"({len(result.succeeded)} succeeded, {len(result.skipped)} skipped)"
            )
        super().__init__(message, node_id=failed[0] if failed else None)
        self.result = result
