"""State commands - inspect records and clear a stale lock."""

import json
import click
from ...model.kinds import get_schema
from ...presentation.plan_formatter import format_state_list, format_state_record
from ...utils.logging import get_logger
from ..utils import EXIT_FAILED, build_engine, fail

logger = get_logger("cli.state")


@click.group()
def state():
    """Inspect the state document."""
    pass


@state.command(name="list")
@click.option('--json', 'as_json', is_flag=True, help='Output records as JSON')
@click.pass_context
def list_records(ctx, as_json):
    """List managed resources with identifiers and outputs."""
    try:
        engine = build_engine(ctx)
        records = engine.store.load().records()
    except Exception as e:
        fail(e)
        return

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
    else:
        click.echo(format_state_list(records))


@state.command()
@click.argument('address')
@click.pass_context
def show(ctx, address):
    """Show one record by ADDRESS (kind.name)."""
    try:
        engine = build_engine(ctx)
        record = engine.store.load().get_address(address)
    except Exception as e:
        fail(e)
        return

    if record is None:
        click.echo(f"No state record for {address}", err=True)
        ctx.exit(EXIT_FAILED)
    schema = get_schema(record.kind)
    click.echo(format_state_record(record, list(schema.sensitive) if schema else []))


@click.command(name="force-unlock")
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def force_unlock(ctx, yes):
    """Remove a stale state lock left by a crashed run."""
    try:
        engine = build_engine(ctx)
    except Exception as e:
        fail(e)
        return

    info = engine.store.lock_info()
    if info is None:
        click.echo("State is not locked.")
        return
    holder = ", ".join(f"{k}={v}" for k, v in sorted(info.items())) or "unknown holder"
    click.echo(f"Lock held by: {holder}")
    if not yes and not click.confirm("Remove it? Only do this if that run is no longer alive", default=False):
        click.echo("Lock kept.")
        return
    engine.store.force_unlock()
    click.echo("Lock removed.")
