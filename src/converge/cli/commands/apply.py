"""Apply and destroy commands - converge the cloud, holding the state lock."""

import signal
import sys
from contextlib import contextmanager
import click
from ...engine import Engine
from ...executor.models import RunStatus
from ...plan.models import Plan
from ...presentation.plan_formatter import format_apply_report, format_plan
from ...utils.errors import PartialApplyError
from ...utils.logging import get_logger
from ..utils import EXIT_FAILED, build_engine, fail, load_document

logger = get_logger("cli.apply")


@contextmanager
def _cancel_on_interrupt(engine: Engine):
    """First Ctrl-C stops dispatching; in-flight actions finish and are recorded."""
    def handler(signum, frame):
        click.echo("\nInterrupt received: finishing in-flight actions, then stopping.", err=True)
        engine.cancel_event.set()
        signal.signal(signal.SIGINT, previous)

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _confirmer(auto_approve: bool, as_json: bool):
    def confirm(plan: Plan) -> bool:
        click.echo(format_plan(plan), err=as_json)
        if not plan.has_changes():
            return False
        if auto_approve:
            return True
        return click.confirm("\nApply these changes?", default=False, err=as_json)
    return confirm


def _run(engine: Engine, desired, destroy: bool, auto_approve: bool, as_json: bool) -> None:
    try:
        with _cancel_on_interrupt(engine):
            report = engine.apply(desired, destroy=destroy, confirm=_confirmer(auto_approve, as_json))
    except PartialApplyError as e:
        _show(e.report, as_json)
        fail(e)
        return
    except Exception as e:
        fail(e)
        return

    if report is None:
        return
    _show(report, as_json)
    if report.status is RunStatus.CANCELLED:
        sys.exit(EXIT_FAILED)


def _show(report, as_json: bool) -> None:
    if as_json:
        click.echo(report.model_dump_json(indent=2))
    else:
        click.echo(format_apply_report(report))


@click.command()
@click.argument('file', required=False, type=click.Path())
@click.option('--var', multiple=True, metavar='NAME=VALUE', help='Set a document variable (repeatable)')
@click.option('--auto-approve', is_flag=True, help='Skip the confirmation prompt')
@click.option('--json', 'as_json', is_flag=True, help='Output the apply report as JSON')
@click.option('--workers', type=click.IntRange(min=1), help='Concurrent actions (overrides executor.max_workers)')
@click.pass_context
def apply(ctx, file, var, auto_approve, as_json, workers):
    """
    Converge the cloud towards FILE.

    Exits 0 on full success, 1 on partial failure or cancellation, 2 when the
    document is invalid and 3 when another run holds the state lock.
    """
    try:
        engine = build_engine(ctx, workers)
        desired = load_document(engine, file, var)
    except Exception as e:
        fail(e)
        return
    _run(engine, desired, False, auto_approve, as_json)


@click.command()
@click.option('--auto-approve', is_flag=True, help='Skip the confirmation prompt')
@click.option('--json', 'as_json', is_flag=True, help='Output the apply report as JSON')
@click.option('--workers', type=click.IntRange(min=1), help='Concurrent actions (overrides executor.max_workers)')
@click.pass_context
def destroy(ctx, auto_approve, as_json, workers):
    """Delete every resource recorded in state, dependents first."""
    try:
        engine = build_engine(ctx, workers)
    except Exception as e:
        fail(e)
        return
    _run(engine, None, True, auto_approve, as_json)
