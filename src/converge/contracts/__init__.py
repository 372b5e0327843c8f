from .values import Reference, parse_reference, fingerprint
from .resource import Lifecycle, ResourceNode
from .state import RecordStatus, StateRecord, StateSnapshot
from .plan import ActionType, Change, ChangeKind, Plan, PlannedAction, action_key
from .result import ActionOutcome, ApplyResult, OutcomeStatus

__all__ = [
    "Reference",
    "parse_reference",
    "fingerprint",
    "Lifecycle",
    "ResourceNode",
    "RecordStatus",
    "StateRecord",
    "StateSnapshot",
    "ActionType",
    "Change",
    "ChangeKind",
    "Plan",
    "PlannedAction",
    "action_key",
    "ActionOutcome",
    "ApplyResult",
    "OutcomeStatus",
]
