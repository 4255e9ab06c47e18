"""Validate command - check a desired-state document without touching the cloud."""

import click
from ...utils.logging import get_logger
from ..utils import build_engine, fail, load_document

logger = get_logger("cli.validate")


@click.command()
@click.argument('file', required=False, type=click.Path())
@click.option('--var', multiple=True, metavar='NAME=VALUE', help='Set a document variable (repeatable)')
@click.pass_context
def validate(ctx, file, var):
    """
    Validate FILE: schema, references and dependency cycles.

    Exits 0 when valid and 2 when the document is invalid.
    """
    try:
        engine = build_engine(ctx)
        desired = load_document(engine, file, var)
        graph = engine.validate(desired)
    except Exception as e:
        fail(e)
        return

    order = graph.topological_order()
    click.echo(f"Valid: {len(order)} resource(s).")
    for address in order:
        dependencies = graph.get_dependencies(address)
        suffix = f"  <- {', '.join(dependencies)}" if dependencies else ""
        click.echo(f"  {address}{suffix}")
