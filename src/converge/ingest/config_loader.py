"""Load a declared resource configuration from YAML or JSON."""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml
from pydantic import ValidationError
from ..contracts.resource import ResourceNode
from ..contracts.values import parse_reference
from ..utils.errors import ConfigLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.config_loader")

VARIABLE_PATTERN = re.compile(r"\$\{var\.([A-Za-z_][A-Za-z0-9_]*)\}")
EMBEDDED_REFERENCE = re.compile(r"\$\{(?!var\.)[^}]+\}")


def load_configuration(config_path: str, variables: Optional[Dict[str, Any]] = None) -> List[ResourceNode]:
    """
    Load resource declarations from a configuration file.

    Document shape::

        variables:
          greeting: hello
        resources:
          - type: local_file
            name: motd
            attributes:
              filename: /tmp/motd
              content: "${var.greeting}"
            depends_on: []
            lifecycle: {prevent_destroy: false, create_before_destroy: false}

    Args:
        config_path: Path to a .yaml/.yml/.json file
        variables: Values overriding the document's variable defaults

    Returns:
        Declared resources with variables substituted and references parsed

    Raises:
        ConfigLoadError: If the file cannot be read or is invalid
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigLoadError(
            f"Configuration file not found: {config_path}. "
            "Please check the file path and ensure the file exists."
        )

    if not path.is_file():
        raise ConfigLoadError(f"Path is not a file: {config_path}.")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() == ".json":
                document = json.load(f)
            else:
                document = yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigLoadError(f"Invalid configuration syntax in {config_path}: {e}")
    except OSError as e:
        raise ConfigLoadError(f"Error reading configuration file {config_path}: {e}")

    nodes = parse_configuration(document or {}, variables)
    logger.info(f"Loaded {len(nodes)} resource(s) from {config_path}")
    return nodes


def parse_configuration(document: Any, variables: Optional[Dict[str, Any]] = None) -> List[ResourceNode]:
    """Build ResourceNodes from an already-parsed configuration document."""
    if not isinstance(document, dict):
        raise ConfigLoadError("Configuration must be a mapping with a 'resources' list")

    declared_vars = document.get("variables") or {}
    if not isinstance(declared_vars, dict):
        raise ConfigLoadError("'variables' must be a mapping")
    bindings = dict(declared_vars)
    bindings.update(variables or {})

    resources = document.get("resources") or []
    if not isinstance(resources, list):
        raise ConfigLoadError("'resources' must be a list")

    nodes: List[ResourceNode] = []
    for idx, raw in enumerate(resources):
        if not isinstance(raw, dict):
            raise ConfigLoadError(f"Resource at index {idx} must be a mapping")
        label = f"{raw.get('type', '?')}.{raw.get('name', '?')}"
        data = dict(raw)
        data["attributes"] = _substitute(data.get("attributes") or {}, bindings, label)
        lifecycle = data.get("lifecycle")
        if lifecycle is None:
            data.pop("lifecycle", None)
        try:
            nodes.append(ResourceNode.model_validate(data))
        except ValidationError as e:
            raise ConfigLoadError(f"Invalid resource {label} at index {idx}: {e}")

    return nodes


def _substitute(value: Any, bindings: Dict[str, Any], label: str) -> Any:
    """Replace ${var.x} and turn whole-string ${type.name.attr} into references."""
    if isinstance(value, dict):
        return {k: _substitute(v, bindings, label) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute(v, bindings, label) for v in value]
    if not isinstance(value, str):
        return value

    whole = VARIABLE_PATTERN.fullmatch(value)
    if whole:
        return _binding(whole.group(1), bindings, label)

    value = VARIABLE_PATTERN.sub(lambda m: str(_binding(m.group(1), bindings, label)), value)

    reference = parse_reference(value)
    if reference is not None:
        return reference
    if EMBEDDED_REFERENCE.search(value):
        raise ConfigLoadError(
            f"{label}: references must be the whole value, e.g. \"${{type.name.attribute}}\"; got {value!r}",
            node_id=label
        )
    return value


def _binding(name: str, bindings: Dict[str, Any], label: str) -> Any:
    if name not in bindings:
        raise ConfigLoadError(f"{label}: undefined variable '{name}'", node_id=label)
    return bindings[name]
