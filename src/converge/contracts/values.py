"""Attribute values: scalars, lists, maps and references to other resources."""

import hashlib
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

REFERENCE_PATTERN = re.compile(r"^\$\{([A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+)\.([A-Za-z0-9_\-.]+)\}$")
REF_KEY = "$ref"


@dataclass(frozen=True)
class Reference:
    """Unresolved reference to another resource's attribute."""
    target: str
    attribute: str

    @property
    def address(self) -> str:
        return f"{self.target}.{self.attribute}"

    @property
    def root_attribute(self) -> str:
        """Top-level attribute name (first segment of a dotted path)."""
        return self.attribute.split(".", 1)[0]

    @classmethod
    def parse(cls, address: str) -> "Reference":
        """Parse ``type.name.attribute[.path]`` into a Reference."""
        parts = address.split(".")
        if len(parts) < 3 or not all(parts):
            raise ValueError(f"Invalid reference address: {address}")
        return cls(target=f"{parts[0]}.{parts[1]}", attribute=".".join(parts[2:]))

    def __str__(self) -> str:
        return "${" + self.address + "}"


def parse_reference(value: str) -> Optional[Reference]:
    """Return a Reference if the string is exactly ``${type.name.attr}``."""
    match = REFERENCE_PATTERN.match(value)
    if not match:
        return None
    return Reference(target=match.group(1), attribute=match.group(2))


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference nested in a value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


def contains_reference(value: Any) -> bool:
    return next(iter_references(value), None) is not None


def resolve_value(value: Any, lookup: Callable[[Reference], Any]) -> Any:
    """
    Rewrite references in a value using lookup.

    The lookup returns the concrete value, or the Reference itself when the
    value is not known yet.
    """
    if isinstance(value, Reference):
        return lookup(value)
    if isinstance(value, dict):
        return {k: resolve_value(v, lookup) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve_value(v, lookup) for v in value]
    return value


_MISSING = object()


def lookup_path(attributes: Dict[str, Any], path: str, default: Any = _MISSING) -> Any:
    """Walk a dotted attribute path into nested maps; raises KeyError if absent."""
    current: Any = attributes
    for segment in path.split("."):
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            if default is _MISSING:
                raise KeyError(path)
            return default
    return current


def encode_value(value: Any) -> Any:
    """Encode references as ``{"$ref": address}`` for JSON documents."""
    if isinstance(value, Reference):
        return {REF_KEY: value.address}
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Inverse of encode_value."""
    if isinstance(value, dict):
        if set(value.keys()) == {REF_KEY} and isinstance(value[REF_KEY], str):
            return Reference.parse(value[REF_KEY])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


def canonical_json(data: Any) -> str:
    return json.dumps(encode_value(data), sort_keys=True, separators=(",", ":"), default=str)


def fingerprint(data: Any) -> str:
    """sha256 over the canonical JSON form of data."""
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


def render_value(value: Any) -> str:
    """Human-readable rendering; unresolved references show as known after apply."""
    if isinstance(value, Reference):
        return f"(known after apply: {value.address})"
    if contains_reference(value):
        return "(known after apply)"
    return json.dumps(value, sort_keys=True, default=str)


__all__: List[str] = [
    "Reference",
    "parse_reference",
    "iter_references",
    "contains_reference",
    "resolve_value",
    "lookup_path",
    "encode_value",
    "decode_value",
    "canonical_json",
    "fingerprint",
    "render_value",
]
