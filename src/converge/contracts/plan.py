"""Pydantic models for planned changes (versioned, immutable once produced)."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_serializer, field_validator
from .resource import Lifecycle
from .values import decode_value, encode_value

PLAN_FORMAT_VERSION = "1.0.0"
FORCES_REPLACEMENT = " requires replacement"


class ChangeKind(str, Enum):
    """Per-resource change computed by the differ."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DESTROY = "DESTROY"
    REPLACE = "REPLACE"
    NO_OP = "NO_OP"


class ActionType(str, Enum):
    """Executable step kinds; a replace expands to create + destroy."""
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


class _AttributeModel(BaseModel):
    """Encodes references inside attribute maps as ``{"$ref": ...}``."""

    @field_validator("before_attributes", "after_attributes", mode="before", check_fields=False)
    @classmethod
    def _decode(cls, value: Any) -> Any:
        return decode_value(value) if isinstance(value, dict) else value

    @field_serializer("before_attributes", "after_attributes", check_fields=False)
    def _encode(self, value: Dict[str, Any]) -> Dict[str, Any]:
        return encode_value(value)


class Change(_AttributeModel):
    """A planned mutation for one resource."""
    node_id: str = Field(..., description="Resource id")
    type: str = Field(..., description="Resource type")
    kind: ChangeKind = Field(..., description="Computed change kind")
    before_attributes: Dict[str, Any] = Field(default_factory=dict, description="Recorded attributes")
    after_attributes: Dict[str, Any] = Field(default_factory=dict, description="Declared attributes, references resolved where known")
    dependencies: List[str] = Field(default_factory=list, description="Ids that must be created or updated first")
    prior_dependencies: List[str] = Field(default_factory=list, description="Recorded dependencies, used to order destroys")
    provider_instance_id: Optional[str] = Field(default=None, description="Instance id of the recorded object")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    changed_attributes: List[str] = Field(default_factory=list, description="Attributes whose value differs")
    replace_reasons: List[str] = Field(default_factory=list, description="Why a replace is required")
    orphaned: bool = Field(default=False, description="Recorded but no longer declared")
    deposed: List[str] = Field(default_factory=list, description="Replaced instance ids left over from earlier applies")

    class Config:
        frozen = True

    @property
    def is_noop(self) -> bool:
        return self.kind == ChangeKind.NO_OP and not self.deposed


class PlannedAction(_AttributeModel):
    """One executable step of a plan."""
    node_id: str = Field(..., description="Resource id")
    type: str = Field(..., description="Resource type")
    action: ActionType = Field(..., description="Provider operation to call")
    wave: int = Field(default=0, ge=0, description="Wave index; waves run strictly in order")
    replace: bool = Field(default=False, description="Part of a replace")
    create_before_destroy: bool = Field(default=False)
    orphaned: bool = Field(default=False)
    deposed: bool = Field(default=False, description="Destroys an instance left over from an earlier replace")
    provider_instance_id: Optional[str] = Field(default=None, description="Instance to update or destroy")
    after_attributes: Dict[str, Any] = Field(default_factory=dict, description="Attributes to send (references re-resolved at apply time)")
    dependencies: List[str] = Field(default_factory=list, description="Resource ids recorded with the new state")
    requires: List[str] = Field(default_factory=list, description="Keys of actions that complete first")

    class Config:
        frozen = True

    @property
    def key(self) -> str:
        return action_key(self.node_id, self.action, self.provider_instance_id if self.deposed else None)


def action_key(node_id: str, action: ActionType, instance_id: Optional[str] = None) -> str:
    """Stable key for an action; deposed destroys carry the instance id."""
    action = ActionType(action)
    if instance_id:
        return f"{action.value}:{node_id}#{instance_id}"
    return f"{action.value}:{node_id}"


class Plan(BaseModel):
    """Ordered, immutable plan for one reconciliation cycle."""
    version: str = Field(default=PLAN_FORMAT_VERSION, description="Plan format version")
    destroy: bool = Field(default=False, description="Produced by a destroy plan")
    state_fingerprint: str = Field(..., description="Fingerprint of the state snapshot the plan was computed from")
    state_serial: int = Field(default=0, ge=0)
    state_lineage: str = Field(default="")
    changes: List[Change] = Field(default_factory=list, description="Differ output, one per resource")
    actions: List[PlannedAction] = Field(default_factory=list, description="Executable steps in wave order")

    class Config:
        frozen = True

    @property
    def has_changes(self) -> bool:
        return bool(self.actions)

    @property
    def wave_count(self) -> int:
        return max((a.wave for a in self.actions), default=-1) + 1

    def waves(self) -> List[List[PlannedAction]]:
        """Actions grouped by wave, in order."""
        grouped: List[List[PlannedAction]] = [[] for _ in range(self.wave_count)]
        for action in self.actions:
            grouped[action.wave].append(action)
        return grouped

    def get_change(self, node_id: str) -> Optional[Change]:
        for change in self.changes:
            if change.node_id == node_id:
                return change
        return None

    def summary(self) -> Dict[str, int]:
        """Counts per change kind (replace counted once)."""
        counts = {kind.value: 0 for kind in ChangeKind}
        for change in self.changes:
            counts[ChangeKind(change.kind).value] += 1
        return counts
