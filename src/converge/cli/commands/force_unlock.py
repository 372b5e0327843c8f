"""Force-unlock command - remove a lock left by a crashed cycle."""

import sys
import click
from ...state import force_unlock as release_lock
from ...utils.errors import ConvergeError
from ..utils import build_driver, format_error


@click.command(name="force-unlock")
@click.argument('lock_id')
@click.option('--state', 'state_path', type=click.Path(), help='State file (overrides engine config)')
@click.option('--config', 'engine_config', type=click.Path(), help='Engine config YAML file')
@click.option('--force', is_flag=True, help='Do not ask for confirmation')
def force_unlock(lock_id, state_path, engine_config, force):
    """
    Release the state lock with id LOCK_ID.

    Only use this when the process that took the lock is gone.
    """
    try:
        store = build_driver(engine_config, state_path).store
        if not force and not click.confirm(f"Release lock {lock_id} on {store.path}?", default=False, err=True):
            click.echo("Unlock cancelled.", err=True)
            sys.exit(1)
        release_lock(store.path, lock_id)
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)

    click.echo(f"Lock {lock_id} released.")
