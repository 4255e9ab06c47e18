"""Main CLI entry point for Converge."""

import click
from .commands.apply import apply, destroy
from .commands.plan import plan
from .commands.state import force_unlock, state
from .commands.validate import validate
from .utils import set_verbose
from ..utils.logging import get_logger
from .. import __version__

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="converge", message="%(prog)s version %(version)s")
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Extra config YAML layered over user/project config')
@click.option('--state', 'state_path', type=click.Path(dir_okay=False), help='State document path')
@click.option('--provider', type=click.Choice(['aws', 'local']), help='Provider backend')
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
@click.pass_context
def cli(ctx, config_path, state_path, provider, verbose):
    """Converge - declarative infrastructure convergence."""
    ctx.ensure_object(dict)
    ctx.obj.update(config_path=config_path, state_path=state_path, provider=provider, verbose=verbose)
    set_verbose(verbose)


cli.add_command(validate)
cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(state)
cli.add_command(force_unlock)

from .commands.version import version as version_command
cli.add_command(version_command)
