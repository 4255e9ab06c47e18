"""Plan command - show what apply would change."""

from pathlib import Path
import click
from ... import __version__
from ...presentation.plan_formatter import format_plan
from ...report.artifact import generate_artifacts
from ...utils.logging import get_logger
from ..utils import build_engine, fail, load_document

logger = get_logger("cli.plan")


@click.command()
@click.argument('file', required=False, type=click.Path())
@click.option('--var', multiple=True, metavar='NAME=VALUE', help='Set a document variable (repeatable)')
@click.option('--destroy', is_flag=True, help='Plan deleting every managed resource')
@click.option('--json', 'as_json', is_flag=True, help='Output the plan as JSON')
@click.option('--out', type=click.Path(file_okay=False), help='Write plan.json, summary.json and metadata.json here')
@click.option('--no-refresh', is_flag=True, help='Plan against the state file without reading the provider')
@click.option('--show-unchanged', is_flag=True, help='List unchanged resources too')
@click.pass_context
def plan(ctx, file, var, destroy, as_json, out, no_refresh, show_unchanged):
    """
    Compute the actions that would converge the cloud towards FILE.

    Exits 0 on success and 2 when the document is invalid.
    """
    try:
        engine = build_engine(ctx)
        desired = None if destroy else load_document(engine, file, var)
        result = engine.plan(desired, destroy=destroy, refresh=False if no_refresh else None)
        if out:
            generate_artifacts(result, Path(out), __version__)
    except Exception as e:
        fail(e)
        return

    if as_json:
        click.echo(result.model_dump_json(indent=2))
    else:
        click.echo(format_plan(result, show_unchanged=show_unchanged))
    if out:
        click.echo(f"Plan artifacts written to: {out}", err=True)
