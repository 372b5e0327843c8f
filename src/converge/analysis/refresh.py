"""Optional drift detection: read recorded objects back from their providers."""

from typing import Any, Dict, Optional
from ..contracts.state import StateSnapshot
from ..execution.retry import RetryPolicy, call_with_retry
from ..providers.registry import ProviderRegistry
from ..utils.errors import ResourceNotFoundError
from ..utils.logging import get_logger

logger = get_logger("analysis.refresh")


def refresh_state(
    snapshot: StateSnapshot,
    providers: ProviderRegistry,
    retry_policy: Optional[RetryPolicy] = None
) -> Dict[str, Optional[Dict[str, Any]]]:
    """
    Read every recorded object whose provider supports reads.

    Returns:
        Record id -> attributes as read (None if the object no longer exists).
        Records whose provider cannot read are left out. The snapshot itself
        is never modified.
    """
    policy = retry_policy or RetryPolicy(max_attempts=1)
    refreshed: Dict[str, Optional[Dict[str, Any]]] = {}

    for record_id in snapshot.ids():
        record = snapshot.get(record_id)
        provider = providers.get(record.type)
        if not provider.supports_read:
            continue

        try:
            attributes = call_with_retry(
                lambda: provider.read(record.provider_instance_id),
                policy=policy,
                is_retryable=provider.capabilities().is_retryable,
                description=f"read {record_id}",
            )
        except ResourceNotFoundError:
            refreshed[record_id] = None
            continue
        except NotImplementedError:
            continue

        drifted = sorted(
            key for key, value in attributes.items()
            if key in record.attributes and record.attributes[key] != value
        )
        if drifted:
            logger.warning(f"Drift detected on {record_id}: {', '.join(drifted)}")
        refreshed[record_id] = attributes

    logger.info(f"Refreshed {len(refreshed)} of {len(snapshot)} recorded resource(s)")
    return refreshed
