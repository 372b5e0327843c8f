"""Destroy command - remove every recorded resource."""

import sys
import click
from ...ingest import load_configuration
from ...presentation.human_formatter import format_apply_result, format_plan
from ...utils.errors import ApplyError, ConvergeError
from ...utils.logging import get_logger
from ..utils import build_driver, echo_output, format_error, interrupt_event, parse_vars, resolve_file_path

logger = get_logger("cli.destroy")


@click.command()
@click.argument('config_file', type=click.Path(exists=False))
@click.option('--var', 'var_pairs', multiple=True, metavar='KEY=VALUE', help='Set a configuration variable (repeatable)')
@click.option('--state', 'state_path', type=click.Path(), help='State file (overrides engine config)')
@click.option('--config', 'engine_config', type=click.Path(), help='Engine config YAML file')
@click.option('--auto-approve', is_flag=True, help='Skip interactive approval of the plan')
def destroy(config_file, var_pairs, state_path, engine_config, auto_approve):
    """
    Destroy every resource recorded in state, dependents first.

    CONFIG_FILE supplies lifecycle.prevent_destroy flags.
    """
    variables = parse_vars(var_pairs)
    try:
        try:
            config_path = resolve_file_path(config_file)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(1)

        nodes = load_configuration(str(config_path), variables)
        driver = build_driver(engine_config, state_path)

        with interrupt_event() as cancel_event:
            result = driver.destroy(
                nodes,
                approve=lambda p: _approve(p, auto_approve),
                cancel_event=cancel_event,
            )

        if result is None:
            click.echo("Destroy cancelled.", err=True)
            sys.exit(1)
        if not result.outcomes:
            click.echo("No resources recorded in state. Nothing to destroy.")
            return
        echo_output(format_apply_result(result))

    except ApplyError as e:
        echo_output(format_apply_result(e.result))
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Destroy failed: {e}"), err=True)
        sys.exit(1)


def _approve(plan, auto_approve: bool) -> bool:
    echo_output(format_plan(plan))
    if auto_approve:
        return True
    return click.confirm("\nDo you really want to destroy all resources?", default=False, err=True)
