"""Apply command - converge real resources toward the configuration."""

import sys
import click
from ...ingest import load_configuration, load_plan
from ...presentation.human_formatter import format_apply_result, format_plan
from ...utils.errors import ApplyError, ConvergeError, StalePlanError
from ...utils.logging import get_logger
from ..utils import build_driver, echo_output, format_error, interrupt_event, parse_vars, resolve_file_path

logger = get_logger("cli.apply")


@click.command()
@click.argument('config_file', required=False, type=click.Path(exists=False))
@click.option('--plan', 'plan_file', type=click.Path(), help='Apply a plan saved with plan --out')
@click.option('--var', 'var_pairs', multiple=True, metavar='KEY=VALUE', help='Set a configuration variable (repeatable)')
@click.option('--state', 'state_path', type=click.Path(), help='State file (overrides engine config)')
@click.option('--config', 'engine_config', type=click.Path(), help='Engine config YAML file')
@click.option('--refresh/--no-refresh', default=None, help='Read recorded objects from providers before diffing')
@click.option('--auto-approve', is_flag=True, help='Skip interactive approval of the plan')
def apply(config_file, plan_file, var_pairs, state_path, engine_config, refresh, auto_approve):
    """
    Plan and apply CONFIG_FILE, or apply a saved plan with --plan.

    A saved plan is applied only if state has not changed since it was made.
    """
    variables = parse_vars(var_pairs)
    if bool(config_file) == bool(plan_file):
        click.echo(format_error("Provide either CONFIG_FILE or --plan FILE"), err=True)
        sys.exit(1)

    try:
        driver = build_driver(engine_config, state_path, refresh)

        with interrupt_event() as cancel_event:
            if plan_file:
                saved = load_plan(plan_file)
                echo_output(format_plan(saved))
                result = driver.apply(saved, cancel_event)
            else:
                try:
                    config_path = resolve_file_path(config_file)
                except FileNotFoundError as e:
                    click.echo(format_error(str(e)), err=True)
                    sys.exit(1)
                nodes = load_configuration(str(config_path), variables)
                planned, result = driver.plan_and_apply(
                    nodes,
                    approve=lambda p: _approve(p, auto_approve),
                    cancel_event=cancel_event,
                )
                if result is None:
                    click.echo("Apply cancelled.", err=True)
                    sys.exit(1)
                if not planned.has_changes:
                    echo_output(format_plan(planned))
                    return

        echo_output(format_apply_result(result))

    except ApplyError as e:
        echo_output(format_apply_result(e.result))
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except StalePlanError as e:
        click.echo(format_error(str(e), "Run plan again to create a fresh plan."), err=True)
        sys.exit(1)
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(1)


def _approve(plan, auto_approve: bool) -> bool:
    echo_output(format_plan(plan))
    if auto_approve:
        return True
    return click.confirm("\nDo you want to perform these actions?", default=False, err=True)
