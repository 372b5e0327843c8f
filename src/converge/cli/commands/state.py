"""State commands - inspect recorded resources."""

import json
import sys
import click
from ...presentation.human_formatter import format_state_list, format_state_record
from ...utils.errors import ConvergeError
from ..utils import build_driver, echo_output, format_error


@click.group()
def state():
    """Inspect the state snapshot."""
    pass


@state.command(name="list")
@click.option('--state', 'state_path', type=click.Path(), help='State file (overrides engine config)')
@click.option('--config', 'engine_config', type=click.Path(), help='Engine config YAML file')
def list_records(state_path, engine_config):
    """List recorded resource ids."""
    try:
        snapshot = build_driver(engine_config, state_path).store.load()
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)

    if not len(snapshot):
        click.echo("No resources recorded in state.", err=True)
        return
    echo_output(format_state_list(snapshot))


@state.command(name="show")
@click.argument('record_id')
@click.option('--state', 'state_path', type=click.Path(), help='State file (overrides engine config)')
@click.option('--config', 'engine_config', type=click.Path(), help='Engine config YAML file')
@click.option('--json', 'as_json', is_flag=True, help='Output the raw record as JSON')
def show(record_id, state_path, engine_config, as_json):
    """Show one recorded resource."""
    try:
        snapshot = build_driver(engine_config, state_path).store.load()
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)

    record = snapshot.get(record_id)
    if record is None:
        click.echo(format_error(f"No resource '{record_id}' in state", "Run 'converge state list'"), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(record.model_dump(mode="json"), indent=2, sort_keys=True))
    else:
        echo_output(format_state_record(record))
