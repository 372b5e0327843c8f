"""Pydantic models for engine configuration."""

from pydantic import BaseModel, Field
from ..execution.retry import RetryPolicy


class StateSettings(BaseModel):
    """Where state is kept."""
    path: str = Field(default="converge.state.json", min_length=1, description="State snapshot file")


class ExecutionSettings(BaseModel):
    """How plans are applied."""
    parallelism: int = Field(default=10, ge=1, description="Maximum in-flight provider operations per wave")
    retry: RetryPolicy = Field(default_factory=RetryPolicy, description="Backoff for retryable provider errors")


class PlanningSettings(BaseModel):
    """How plans are computed."""
    refresh: bool = Field(default=False, description="Read recorded objects from providers before diffing")


class EngineConfig(BaseModel):
    """Complete engine configuration."""
    state: StateSettings = Field(default_factory=StateSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    planning: PlanningSettings = Field(default_factory=PlanningSettings)

    class Config:
        extra = "forbid"
