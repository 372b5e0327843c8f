"""Save and load plans as JSON files."""

import json
from pathlib import Path
from pydantic import ValidationError
from ..contracts.plan import PLAN_FORMAT_VERSION, Plan
from ..utils.errors import PlanFileError
from ..utils.logging import get_logger

logger = get_logger("ingest.plan_file")


def save_plan(plan: Plan, output_path: str) -> Path:
    """Write plan JSON (references encoded as {"$ref": ...})."""
    path = Path(output_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(plan.model_dump(mode="json"), f, indent=2, sort_keys=True)
    except (OSError, TypeError) as e:
        raise PlanFileError(f"Failed to write plan file {output_path}: {e}")
    logger.info(f"Saved plan with {len(plan.actions)} action(s) to {path}")
    return path


def load_plan(plan_path: str) -> Plan:
    """
    Load a plan saved by save_plan.

    Raises:
        PlanFileError: If the file is missing, not JSON, or not a plan
    """
    path = Path(plan_path)
    if not path.is_file():
        raise PlanFileError(f"Plan file not found: {plan_path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise PlanFileError(f"Invalid JSON in plan file {plan_path}: {e}")
    except OSError as e:
        raise PlanFileError(f"Error reading plan file {plan_path}: {e}")

    if not isinstance(data, dict):
        raise PlanFileError(f"Plan file {plan_path} must contain a JSON object")

    version = str(data.get("version", ""))
    if version.split(".")[0] != PLAN_FORMAT_VERSION.split(".")[0]:
        raise PlanFileError(
            f"Plan file {plan_path} has format version {version or 'unknown'}; "
            f"expected {PLAN_FORMAT_VERSION}"
        )

    try:
        plan = Plan.model_validate(data)
    except ValidationError as e:
        raise PlanFileError(f"Invalid plan file {plan_path}: {e}")

    logger.info(f"Loaded plan with {len(plan.actions)} action(s) from {path}")
    return plan
