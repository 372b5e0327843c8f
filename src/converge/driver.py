"""Reconciliation driver: differ -> planner -> executor under one state lock."""

import threading
import time
from typing import Callable, Iterable, Optional, Tuple
from .analysis.differ import compute_changes, compute_destroy_changes
from .analysis.planner import build_plan
from .analysis.refresh import refresh_state
from .config.models import EngineConfig
from .contracts.plan import Plan
from .contracts.resource import ResourceNode
from .contracts.result import ApplyResult
from .execution.executor import DEFAULT_PARALLELISM, Executor
from .execution.retry import RetryPolicy
from .graph.dependency_graph import ResourceGraph
from .providers.registry import ProviderRegistry, default_registry
from .state.store import StateStore
from .utils.errors import ApplyError, StalePlanError
from .utils.logging import get_logger

logger = get_logger("driver")


class ReconciliationDriver:
    """
    Plan, apply and destroy against one state store.

    Every operation holds the store's advisory lock; nested operations reuse it,
    so plan_and_apply() and destroy() run as a single locked cycle.
    """

    def __init__(
        self,
        store: StateStore,
        providers: ProviderRegistry,
        parallelism: int = DEFAULT_PARALLELISM,
        retry_policy: Optional[RetryPolicy] = None,
        refresh: bool = False,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.store = store
        self.providers = providers
        self.parallelism = parallelism
        self.retry_policy = retry_policy or RetryPolicy()
        self.refresh = refresh
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: EngineConfig, providers: Optional[ProviderRegistry] = None,
                    state_path: Optional[str] = None) -> "ReconciliationDriver":
        return cls(
            store=StateStore(state_path or config.state.path),
            providers=providers or default_registry(),
            parallelism=config.execution.parallelism,
            retry_policy=config.execution.retry,
            refresh=config.planning.refresh,
        )

    def build_graph(self, nodes: Iterable[ResourceNode]) -> ResourceGraph:
        """Validate configuration: duplicate ids, references, cycles, provider types."""
        nodes = list(nodes)
        for node in nodes:
            self.providers.get(node.type)
        return ResourceGraph.from_nodes(nodes, computed_attributes=self.providers.computed_attributes)

    def plan(self, nodes: Iterable[ResourceNode], refresh: Optional[bool] = None) -> Plan:
        """Compute the plan that converges state toward the declared nodes."""
        with self.store.locked("plan"):
            snapshot = self.store.load()
            graph = self.build_graph(nodes)
            refreshed = None
            if self.refresh if refresh is None else refresh:
                refreshed = refresh_state(snapshot, self.providers, self.retry_policy)
            changes = compute_changes(graph, snapshot, self.providers, refreshed)
            return build_plan(changes, snapshot)

    def plan_destroy(self, nodes: Optional[Iterable[ResourceNode]] = None) -> Plan:
        """Plan destruction of every recorded resource; create/update are never planned."""
        with self.store.locked("plan"):
            snapshot = self.store.load()
            graph = self.build_graph(nodes) if nodes is not None else None
            changes = compute_destroy_changes(snapshot, self.providers, graph)
            return build_plan(changes, snapshot, destroy=True)

    def apply(self, plan: Plan, cancel_event: Optional[threading.Event] = None) -> ApplyResult:
        """
        Apply a plan computed from the current state.

        Raises:
            StalePlanError: State changed since the plan was computed (nothing is applied)
            ApplyError: Some action failed or the apply was cancelled
        """
        with self.store.locked("apply"):
            snapshot = self.store.load()
            if snapshot.fingerprint != plan.state_fingerprint:
                raise StalePlanError(
                    f"State changed since the plan was created (serial {plan.state_serial} -> "
                    f"{snapshot.serial}). Run plan again."
                )
            if not plan.has_changes:
                logger.info("Plan has no changes; nothing to apply")
                return ApplyResult()

            executor = Executor(
                self.store,
                self.providers,
                parallelism=self.parallelism,
                retry_policy=self.retry_policy,
                sleep=self._sleep,
            )
            result = executor.apply(plan, cancel_event)
            if not result.success:
                raise ApplyError(result)
            return result

    def plan_and_apply(
        self,
        nodes: Iterable[ResourceNode],
        approve: Optional[Callable[[Plan], bool]] = None,
        cancel_event: Optional[threading.Event] = None,
        refresh: Optional[bool] = None
    ) -> Tuple[Plan, Optional[ApplyResult]]:
        """Plan and apply in one locked cycle; approve may decline (result None)."""
        with self.store.locked("apply"):
            plan = self.plan(nodes, refresh=refresh)
            if not plan.has_changes:
                return plan, ApplyResult()
            if approve is not None and not approve(plan):
                logger.info("Plan was not approved")
                return plan, None
            return plan, self.apply(plan, cancel_event)

    def destroy(
        self,
        nodes: Optional[Iterable[ResourceNode]] = None,
        approve: Optional[Callable[[Plan], bool]] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> Optional[ApplyResult]:
        """Destroy every recorded resource in reverse dependency order."""
        with self.store.locked("destroy"):
            plan = self.plan_destroy(nodes)
            if approve is not None and plan.has_changes and not approve(plan):
                logger.info("Destroy plan was not approved")
                return None
            return self.apply(plan, cancel_event)
