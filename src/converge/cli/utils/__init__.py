"""CLI utilities package."""

import signal
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Tuple
import click
import yaml
from ...config import load_engine_config
from ...driver import ReconciliationDriver
from ...utils.logging import get_logger
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def parse_vars(pairs: Tuple[str, ...]) -> Dict[str, Any]:
    """
    Parse repeated ``--var KEY=VALUE`` options.

    Values are parsed as YAML scalars, so ``--var count=3`` binds an int.

    Raises:
        click.BadParameter: If a pair has no '='
    """
    variables: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--var")
        try:
            value = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            value = raw
        variables[key] = value if isinstance(value, (str, int, float, bool)) or value is None else raw
    return variables


def build_driver(engine_config: Optional[str], state_path: Optional[str],
                 refresh: Optional[bool] = None) -> ReconciliationDriver:
    """Create a driver from layered engine config plus CLI overrides."""
    overrides: Dict[str, Any] = {}
    if state_path:
        overrides["state"] = {"path": state_path}
    if refresh is not None:
        overrides["planning"] = {"refresh": refresh}
    config = load_engine_config(engine_config, overrides)
    return ReconciliationDriver.from_config(config)


@contextmanager
def interrupt_event() -> Iterator[threading.Event]:
    """
    Route SIGINT to a cancellation event for the duration of an apply.

    The first Ctrl-C lets in-flight provider calls finish and stops before the
    next wave; a second one raises KeyboardInterrupt.
    """
    event = threading.Event()

    def _handler(signum, frame):
        if event.is_set():
            raise KeyboardInterrupt
        click.echo("\nInterrupt received; finishing in-flight actions before stopping...", err=True)
        event.set()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # not the main thread
        yield event
        return
    try:
        yield event
    finally:
        signal.signal(signal.SIGINT, previous)


def echo_output(text: str) -> None:
    """Echo text, falling back to ASCII on terminals that cannot encode it."""
    try:
        click.echo(text)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'))


__all__ = [
    "build_driver",
    "echo_output",
    "format_error",
    "interrupt_event",
    "parse_vars",
    "resolve_file_path",
]
