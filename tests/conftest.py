"""Shared fixtures: an in-memory provider, a temporary state store and a driver."""

import threading
from typing import Any, Callable, Dict, List, Optional, Tuple
import pytest
from converge.contracts.resource import Lifecycle, ResourceNode
from converge.driver import ReconciliationDriver
from converge.providers.base import Provider, ProviderCapabilities
from converge.providers.registry import ProviderRegistry
from converge.state.store import StateStore
from converge.utils.errors import ResourceNotFoundError


class FakeProvider(Provider):
    """
    In-memory provider for the ``fake`` resource type.

    Every declared resource carries a ``tag`` attribute (its name) so failures
    can be injected per resource. Only ``size`` is updatable in place.
    """

    def __init__(self, updatable=("size",)):
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.created_with: Dict[str, Dict[str, Any]] = {}
        self.before_call: Optional[Callable[[str, str], None]] = None
        self._failures: Dict[Tuple[str, str], List[Any]] = {}
        self._updatable = frozenset(updatable)
        self._counter = 0
        self._lock = threading.Lock()

    def fail(self, op: str, tag: str, error: Exception, times: Optional[int] = None) -> None:
        """Raise error for the next `times` calls of op on tag (forever if None)."""
        self._failures[(op, tag)] = [error, times]

    def clear_failures(self) -> None:
        self._failures.clear()

    def calls_for(self, op: str) -> List[str]:
        return [tag for call_op, tag in self.calls if call_op == op]

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(updatable_attributes=self._updatable)

    def _enter(self, op: str, tag: str) -> None:
        with self._lock:
            self.calls.append((op, tag))
            failure = self._failures.get((op, tag))
            if failure is not None:
                error, remaining = failure
                if remaining is None or remaining > 0:
                    if remaining is not None:
                        failure[1] = remaining - 1
                    raise error
        if self.before_call is not None:
            self.before_call(op, tag)

    def create(self, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        tag = attributes.get("tag", "?")
        self._enter("create", tag)
        with self._lock:
            self._counter += 1
            instance_id = f"{tag}-{self._counter}"
            result = dict(attributes)
            result["id"] = instance_id
            self.objects[instance_id] = result
            self.created_with[tag] = dict(attributes)
        return instance_id, dict(result)

    def update(self, instance_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        self._enter("update", self._tag(instance_id))
        with self._lock:
            result = dict(attributes)
            result["id"] = instance_id
            self.objects[instance_id] = result
        return dict(result)

    def destroy(self, instance_id: str) -> None:
        self._enter("destroy", self._tag(instance_id))
        with self._lock:
            self.objects.pop(instance_id, None)

    def _tag(self, instance_id: str) -> str:
        return instance_id.rsplit("-", 1)[0]


class ReadableFakeProvider(FakeProvider):
    """FakeProvider that supports refresh reads."""

    def read(self, instance_id: str) -> Dict[str, Any]:
        self._enter("read", self._tag(instance_id))
        obj = self.objects.get(instance_id)
        if obj is None:
            raise ResourceNotFoundError(f"{instance_id} is gone")
        return dict(obj)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def registry(fake_provider):
    return ProviderRegistry({"fake": fake_provider})


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state.json"


@pytest.fixture
def store(state_path):
    return StateStore(state_path)


@pytest.fixture
def sleeps():
    """Delays requested by retries (no real sleeping)."""
    return []


@pytest.fixture
def driver(store, registry, sleeps):
    return ReconciliationDriver(store, registry, sleep=sleeps.append)


@pytest.fixture
def make_node():
    """Factory for ``fake`` resources; the name is also stored as the tag attribute."""

    def _make(name: str, depends_on=(), prevent_destroy=False, create_before_destroy=False, **attributes):
        attrs = {"tag": name}
        attrs.update(attributes)
        return ResourceNode(
            type="fake",
            name=name,
            attributes=attrs,
            depends_on=list(depends_on),
            lifecycle=Lifecycle(prevent_destroy=prevent_destroy, create_before_destroy=create_before_destroy),
        )

    return _make


@pytest.fixture
def readable_provider():
    return ReadableFakeProvider()
