"""Pydantic models for recorded state."""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel, Field


class RecordStatus(str, Enum):
    """Status of a recorded resource instance."""
    APPLIED = "applied"
    TAINTED = "tainted"
    ORPHANED = "orphaned"


class StateRecord(BaseModel):
    """Durable record of one applied resource instance."""
    id: str = Field(..., description="Resource id at the time it was created")
    type: str = Field(..., description="Resource type")
    provider_instance_id: str = Field(..., description="Opaque identifier returned by the provider")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Last applied attribute values, fully resolved")
    config_fingerprint: str = Field(default="", description="Hash of the resolved declared attributes")
    status: RecordStatus = Field(default=RecordStatus.APPLIED, description="Instance status")
    dependencies: List[str] = Field(default_factory=list, description="Ids this resource depended on when applied")
    deposed: List[str] = Field(default_factory=list, description="Replaced instance ids still awaiting destroy")

    class Config:
        use_enum_values = True
        validate_default = True
        extra = "allow"


class StateSnapshot:
    """Read-only view of the state for one planning cycle."""

    def __init__(self, records: Dict[str, StateRecord], serial: int, lineage: str, fingerprint: str):
        self._records = MappingProxyType(
            {record_id: record.model_copy(deep=True) for record_id, record in records.items()}
        )
        self._serial = serial
        self._lineage = lineage
        self._fingerprint = fingerprint

    @property
    def records(self) -> Mapping[str, StateRecord]:
        return self._records

    @property
    def serial(self) -> int:
        return self._serial

    @property
    def lineage(self) -> str:
        return self._lineage

    @property
    def fingerprint(self) -> str:
        return self._fingerprint

    def get(self, record_id: str) -> Optional[StateRecord]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    def ids(self) -> List[str]:
        return sorted(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"StateSnapshot(serial={self._serial}, records={len(self._records)})"
