"""Apply a plan wave by wave against providers, committing state after every action."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional
from ..contracts.plan import ActionType, Plan, PlannedAction
from ..contracts.result import ActionOutcome, ApplyResult, OutcomeStatus
from ..contracts.state import RecordStatus, StateRecord
from ..contracts.values import Reference, fingerprint, lookup_path, resolve_value
from ..providers.base import Provider
from ..providers.registry import ProviderRegistry
from ..state.store import StateStore
from ..utils.errors import ProviderError, UnresolvedReferenceError
from ..utils.logging import get_logger
from .retry import RetryPolicy, call_with_retry

logger = get_logger("execution.executor")

DEFAULT_PARALLELISM = 10


class Executor:
    """
    Runs plan waves strictly in order; members of one wave run concurrently.

    A failed action lets its siblings finish, then every later wave is skipped.
    Committed records from earlier actions stay in place.
    """

    def __init__(
        self,
        store: StateStore,
        providers: ProviderRegistry,
        parallelism: int = DEFAULT_PARALLELISM,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        if parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        self.store = store
        self.providers = providers
        self.parallelism = parallelism
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    def apply(self, plan: Plan, cancel_event: Optional[threading.Event] = None) -> ApplyResult:
        """Apply every wave of the plan; never raises for action failures."""
        outcomes: Dict[str, ActionOutcome] = {}
        waves = plan.waves()
        halted = False
        cancelled = False

        for index, wave in enumerate(waves):
            if not halted and cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Cancellation requested; not starting wave {index + 1}/{len(waves)}")
                cancelled = True
                halted = True
            if halted:
                for action in wave:
                    outcomes[action.key] = _outcome(action, OutcomeStatus.SKIPPED)
                continue

            logger.info(f"Starting wave {index + 1}/{len(waves)}: "
                        f"{', '.join(f'{a.action.value} {a.node_id}' for a in wave)}")
            wave_outcomes = self._run_wave(wave)
            outcomes.update(wave_outcomes)
            failed = [o for o in wave_outcomes.values() if o.status == OutcomeStatus.FAILED]
            if failed:
                logger.error(f"Wave {index + 1} failed for {', '.join(o.node_id for o in failed)}; "
                             f"skipping {len(waves) - index - 1} remaining wave(s)")
                halted = True

        for action in plan.actions:
            if outcomes[action.key].status == OutcomeStatus.SKIPPED:
                self._mark_orphaned(action)

        result = ApplyResult(outcomes=[outcomes[a.key] for a in plan.actions], cancelled=cancelled)
        logger.info(f"Apply finished: {len(result.succeeded)} succeeded, "
                    f"{len(result.failed)} failed, {len(result.skipped)} skipped")
        return result

    def _run_wave(self, wave: List[PlannedAction]) -> Dict[str, ActionOutcome]:
        results: Dict[str, ActionOutcome] = {}
        with ThreadPoolExecutor(max_workers=min(self.parallelism, len(wave)),
                                thread_name_prefix="converge-apply") as pool:
            futures = {pool.submit(self._run_action, action): action for action in wave}
            for future in as_completed(futures):
                action = futures[future]
                results[action.key] = future.result()
        return results

    def _run_action(self, action: PlannedAction) -> ActionOutcome:
        attempts = 0

        def on_attempt(attempt: int) -> None:
            nonlocal attempts
            attempts = attempt

        try:
            provider = self.providers.get(action.type)
            if action.action == ActionType.CREATE:
                self._create(action, provider, on_attempt)
            elif action.action == ActionType.UPDATE:
                self._update(action, provider, on_attempt)
            else:
                self._destroy(action, provider, on_attempt)
        except Exception as e:
            logger.error(f"{action.action.value} {action.node_id} failed: {e}",
                         exc_info=not isinstance(e, (ProviderError, UnresolvedReferenceError)))
            self._record_failure(action, e)
            return _outcome(action, OutcomeStatus.FAILED, error=str(e) or type(e).__name__, attempts=attempts)

        logger.info(f"{action.action.value} {action.node_id} succeeded")
        return _outcome(action, OutcomeStatus.SUCCEEDED, attempts=attempts)

    def _call(self, fn: Callable[[], Any], provider: Provider, description: str,
              on_attempt: Callable[[int], None]) -> Any:
        return call_with_retry(
            fn,
            policy=self.retry_policy,
            is_retryable=provider.capabilities().is_retryable,
            sleep=self._sleep,
            description=description,
            on_attempt=on_attempt,
        )

    def _resolve(self, action: PlannedAction) -> Dict[str, Any]:
        """Replace references with values from committed state."""

        def lookup(reference: Reference) -> Any:
            record = self.store.get(reference.target)
            if record is None:
                raise UnresolvedReferenceError(action.node_id, reference.address,
                                               reason=f"{reference.target} has no recorded state")
            try:
                return lookup_path(record.attributes, reference.attribute)
            except KeyError:
                raise UnresolvedReferenceError(action.node_id, reference.address,
                                               reason=f"{reference.target} has no attribute '{reference.attribute}'")

        return resolve_value(action.after_attributes, lookup)

    def _create(self, action: PlannedAction, provider: Provider, on_attempt) -> None:
        attributes = self._resolve(action)
        instance_id, result = self._call(lambda: provider.create(attributes), provider,
                                         f"create {action.node_id}", on_attempt)
        self.store.commit(StateRecord(
            id=action.node_id,
            type=action.type,
            provider_instance_id=instance_id,
            attributes=result,
            config_fingerprint=fingerprint(attributes),
            status=RecordStatus.APPLIED,
            dependencies=action.dependencies,
            deposed=self._deposed_after_create(action, instance_id),
        ))

    def _deposed_after_create(self, action: PlannedAction, new_instance_id: str) -> List[str]:
        prior = self.store.get(action.node_id)
        if prior is None:
            return []
        deposed = list(prior.deposed)
        if action.create_before_destroy and prior.provider_instance_id != new_instance_id:
            deposed.append(prior.provider_instance_id)
        return deposed

    def _update(self, action: PlannedAction, provider: Provider, on_attempt) -> None:
        attributes = self._resolve(action)
        result = self._call(lambda: provider.update(action.provider_instance_id, attributes), provider,
                            f"update {action.node_id}", on_attempt)
        prior = self.store.get(action.node_id)
        self.store.commit(StateRecord(
            id=action.node_id,
            type=action.type,
            provider_instance_id=action.provider_instance_id,
            attributes=result,
            config_fingerprint=fingerprint(attributes),
            status=RecordStatus.APPLIED,
            dependencies=action.dependencies,
            deposed=prior.deposed if prior else [],
        ))

    def _destroy(self, action: PlannedAction, provider: Provider, on_attempt) -> None:
        self._call(lambda: provider.destroy(action.provider_instance_id), provider,
                   f"destroy {action.node_id}", on_attempt)
        current = self.store.get(action.node_id)
        if current is None:
            return
        if current.provider_instance_id == action.provider_instance_id:
            self.store.remove(action.node_id)
        elif action.provider_instance_id in current.deposed:
            current.deposed = [i for i in current.deposed if i != action.provider_instance_id]
            self.store.commit(current)

    def _record_failure(self, action: PlannedAction, error: Exception) -> None:
        """Mark state so the next plan sees what may have been left behind."""
        instance_id = getattr(error, "instance_id", None)
        try:
            if action.action == ActionType.CREATE and instance_id:
                attributes = resolve_value(action.after_attributes, lambda ref: None)
                self.store.commit(StateRecord(
                    id=action.node_id,
                    type=action.type,
                    provider_instance_id=instance_id,
                    attributes=attributes,
                    status=RecordStatus.TAINTED,
                    dependencies=action.dependencies,
                    deposed=self._deposed_after_create(action, instance_id),
                ))
                logger.warning(f"{action.node_id} may have been partially created ({instance_id}); marked tainted")
            elif action.action == ActionType.UPDATE and instance_id:
                self._set_status(action.node_id, RecordStatus.TAINTED)
                logger.warning(f"{action.node_id} may have been partially updated; marked tainted")
            elif action.action == ActionType.DESTROY:
                self._mark_orphaned(action)
        except Exception as e:
            logger.error(f"Could not record failure state for {action.node_id}: {e}", exc_info=True)

    def _mark_orphaned(self, action: PlannedAction) -> None:
        if action.action == ActionType.DESTROY and action.orphaned and not action.deposed:
            self._set_status(action.node_id, RecordStatus.ORPHANED)

    def _set_status(self, node_id: str, status: RecordStatus) -> None:
        record = self.store.get(node_id)
        if record is None or record.status == status:
            return
        record.status = status
        self.store.commit(record)


def _outcome(action: PlannedAction, status: OutcomeStatus, error: Optional[str] = None,
             attempts: int = 0) -> ActionOutcome:
    return ActionOutcome(
        node_id=action.node_id,
        action=action.action,
        wave=action.wave,
        status=status,
        error=error,
        attempts=attempts,
    )
