"""converge - Declarative infrastructure reconciliation engine."""

import threading
from typing import Dict, Any, Optional
from .config import load_engine_config
from .contracts.plan import Plan
from .contracts.result import ApplyResult
from .driver import ReconciliationDriver
from .ingest.config_loader import load_configuration
from .providers.registry import ProviderRegistry
from .utils.logging import setup_logging, get_logger
from .utils.errors import ConvergeError

__version__ = "0.1.0"

__all__ = ["plan", "apply", "ReconciliationDriver", "ConvergeError", "__version__"]

setup_logging()
logger = get_logger("converge")


def _driver(config_path: Optional[str], state_path: Optional[str],
            providers: Optional[ProviderRegistry]) -> ReconciliationDriver:
    config = load_engine_config(config_path)
    return ReconciliationDriver.from_config(config, providers=providers, state_path=state_path)


def plan(resource_config: str, variables: Optional[Dict[str, Any]] = None,
         state_path: Optional[str] = None, config_path: Optional[str] = None,
         providers: Optional[ProviderRegistry] = None) -> Plan:
    """Load a resource configuration file and return the plan that would converge it."""
    nodes = load_configuration(resource_config, variables)
    return _driver(config_path, state_path, providers).plan(nodes)


def apply(resource_config: str, variables: Optional[Dict[str, Any]] = None,
          state_path: Optional[str] = None, config_path: Optional[str] = None,
          providers: Optional[ProviderRegistry] = None,
          cancel_event: Optional[threading.Event] = None) -> ApplyResult:
    """
    Plan and apply a resource configuration file without interactive approval.

    Raises:
        ApplyError: If any action failed or the apply was cancelled
    """
    nodes = load_configuration(resource_config, variables)
    _, result = _driver(config_path, state_path, providers).plan_and_apply(nodes, cancel_event=cancel_event)
    logger.info(f"Apply finished: {len(result.succeeded)} action(s) succeeded")
    return result
