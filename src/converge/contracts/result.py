"""Pydantic models for apply outcomes."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from .plan import ActionType


class OutcomeStatus(str, Enum):
    """Final outcome of one planned action."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ActionOutcome(BaseModel):
    """Outcome of one planned action."""
    node_id: str = Field(..., description="Resource id")
    action: ActionType = Field(..., description="Provider operation")
    wave: int = Field(default=0, ge=0)
    status: OutcomeStatus = Field(..., description="Final status")
    error: Optional[str] = Field(default=None, description="Failure reason")
    attempts: int = Field(default=0, ge=0, description="Provider calls made, retries included")

    class Config:
        use_enum_values = True


class ApplyResult(BaseModel):
    """Every action's outcome for one apply."""
    outcomes: List[ActionOutcome] = Field(default_factory=list)
    cancelled: bool = Field(default=False, description="Stopped between waves by a cancellation signal")

    @property
    def succeeded(self) -> List[ActionOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.SUCCEEDED]

    @property
    def failed(self) -> List[ActionOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.FAILED]

    @property
    def skipped(self) -> List[ActionOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.SKIPPED]

    @property
    def success(self) -> bool:
        return not self.cancelled and not self.failed and not self.skipped

    def outcome_for(self, node_id: str, action: Optional[ActionType] = None) -> Optional[ActionOutcome]:
        for outcome in self.outcomes:
            if outcome.node_id == node_id and (action is None or outcome.action == action):
                return outcome
        return None
