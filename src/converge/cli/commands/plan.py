"""Plan command - show what apply would change."""

import json
import sys
import click
from ...ingest import load_configuration, save_plan
from ...presentation.human_formatter import format_plan, plan_to_dict
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import build_driver, echo_output, format_error, parse_vars, resolve_file_path

logger = get_logger("cli.plan")


@click.command()
@click.argument('config_file', type=click.Path(exists=False))
@click.option('--var', 'var_pairs', multiple=True, metavar='KEY=VALUE', help='Set a configuration variable (repeatable)')
@click.option('--state', 'state_path', type=click.Path(), help='State file (overrides engine config)')
@click.option('--config', 'engine_config', type=click.Path(), help='Engine config YAML file')
@click.option('--out', 'out_path', type=click.Path(), help='Save the plan for a later apply --plan')
@click.option('--json', 'as_json', is_flag=True, help='Output structured JSON instead of human-readable')
@click.option('--refresh/--no-refresh', default=None, help='Read recorded objects from providers before diffing')
def plan(config_file, var_pairs, state_path, engine_config, out_path, as_json, refresh):
    """
    Compute the changes needed to converge state toward CONFIG_FILE.

    Nothing is created, changed or destroyed. Exits 0 when there are no
    changes, 2 when changes are pending and 1 on error.
    """
    variables = parse_vars(var_pairs)
    try:
        try:
            config_path = resolve_file_path(config_file)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(1)

        nodes = load_configuration(str(config_path), variables)
        driver = build_driver(engine_config, state_path, refresh)
        result = driver.plan(nodes)

        if out_path:
            saved = save_plan(result, out_path)
            click.echo(f"Plan saved to: {saved}", err=True)

        if as_json:
            click.echo(json.dumps(plan_to_dict(result), indent=2, sort_keys=True))
        else:
            echo_output(format_plan(result))

    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Plan failed: {e}"), err=True)
        sys.exit(1)

    if result.has_changes:
        sys.exit(2)
