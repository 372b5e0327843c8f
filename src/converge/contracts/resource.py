"""Pydantic models for declared resources."""

from typing import Any, Dict, List
from pydantic import BaseModel, Field, field_serializer, field_validator
from .values import decode_value, encode_value


class Lifecycle(BaseModel):
    """Per-resource lifecycle flags."""
    prevent_destroy: bool = Field(default=False, description="Fail any plan that destroys or replaces this resource")
    create_before_destroy: bool = Field(default=False, description="Create the replacement before destroying the original")

    class Config:
        frozen = True


class ResourceNode(BaseModel):
    """A declared unit of infrastructure."""
    type: str = Field(..., min_length=1, description="Resource kind, resolved by a provider")
    name: str = Field(..., min_length=1, description="Resource name, unique per type")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Declared attributes (may contain references)")
    depends_on: List[str] = Field(default_factory=list, description="Explicit dependency ids")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle, description="Lifecycle flags")

    @field_validator("type", "name")
    @classmethod
    def _no_dots(cls, value: str) -> str:
        if "." in value:
            raise ValueError(f"'{value}' must not contain '.'")
        return value

    @field_validator("attributes", mode="before")
    @classmethod
    def _decode_attributes(cls, value: Any) -> Any:
        return decode_value(value) if isinstance(value, dict) else value

    @field_serializer("attributes")
    def _encode_attributes(self, value: Dict[str, Any]) -> Dict[str, Any]:
        return encode_value(value)

    @property
    def id(self) -> str:
        return f"{self.type}.{self.name}"
