# Overview: Flask CLI command groups for database bootstrap and shift operations.

# backend/cashdrawer/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to cashdrawer (PowerShell: $env:FLASK_APP="cashdrawer").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shift operations (amounts in major units, e.g. 100.00):
# - python -m flask shifts list [--context register-1] [--status OPEN] [--limit 20]
# - python -m flask shifts open --user-id u1 --user-name "Ana" --float 100.00 [--context register-1]
# - python -m flask shifts pay SHIFT_ID --method cash --amount 20.00 --user-id u1 --user-name "Ana" [--return] [--key trx-1:0]
# - python -m flask shifts move SHIFT_ID --type OUT --amount 20.00 --reason "tip payout" --user-id u1 --user-name "Ana"
# - python -m flask shifts close SHIFT_ID --counted 185.00 --user-id u1 --user-name "Ana"
# - python -m flask shifts summary SHIFT_ID
# - python -m flask shifts report SHIFT_ID

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import ShiftError
from .extensions import db, get_shift_manager
from .services.audit import Actor
from .services.shift_state import TRANSACTION_RETURN, TRANSACTION_SALE, VALID_PAYMENT_METHODS


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.UsageError("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('shifts')
def shifts_group():
    """Shift lifecycle commands."""


def _actor_options(f):
    f = click.option('--user-name', required=True, help='Acting user name')(f)
    f = click.option('--user-id', required=True, help='Acting user id')(f)
    return f


def _fail(e: ShiftError):
    raise click.ClickException(f"{e.kind}: {e.message}")


def _echo_shift(shift):
    symbol = current_app.config["CURRENCY_SYMBOL"]
    click.echo(
        f"{shift.id}  {shift.status:<6}  {shift.context:<12}  {shift.user_name:<16}  "
        f"float={shift.starting_cash.format(symbol)}  sales={shift.total_sales.format(symbol)}"
        + (f"  diff={shift.difference.format(symbol)}" if shift.difference is not None else "")
    )


@shifts_group.command('list')
@click.option('--context', default=None, help='Filter by context')
@click.option('--status', type=click.Choice(['OPEN', 'CLOSED']), default=None)
@click.option('--limit', default=20, show_default=True)
@with_appcontext
def list_shifts(context, status, limit):
    """List recent shifts."""
    shifts = get_shift_manager().list_shifts(context=context, status=status, limit=limit)
    if not shifts:
        click.echo("No shifts found.")
        return
    for shift in shifts:
        _echo_shift(shift)


@shifts_group.command('open')
@_actor_options
@click.option('--float', 'starting_cash', required=True, help='Opening float, e.g. 100.00')
@click.option('--context', default=None, help='Register/session context')
@with_appcontext
def open_shift(user_id, user_name, starting_cash, context):
    """Open a shift."""
    try:
        shift = get_shift_manager().open(
            user_id, user_name, starting_cash,
            context=context or current_app.config["DEFAULT_SHIFT_CONTEXT"],
        )
    except ShiftError as e:
        _fail(e)
    click.echo(f"PASS Opened shift {shift.id}")
    _echo_shift(shift)


@shifts_group.command('pay')
@click.argument('shift_id')
@_actor_options
@click.option('--method', type=click.Choice(VALID_PAYMENT_METHODS), required=True)
@click.option('--amount', required=True, help='Amount, e.g. 20.00 (signed for returns)')
@click.option('--return', 'is_return', is_flag=True, help='Post as a return leg')
@click.option('--key', 'idempotency_key', default=None, help='Idempotency key')
@with_appcontext
def post_payment(shift_id, user_id, user_name, method, amount, is_return, idempotency_key):
    """Post a sale or return payment leg."""
    try:
        shift = get_shift_manager().post_sale_payment(
            shift_id, method, amount, Actor(user_id, user_name),
            transaction_type=TRANSACTION_RETURN if is_return else TRANSACTION_SALE,
            idempotency_key=idempotency_key,
        )
    except ShiftError as e:
        _fail(e)
    _echo_shift(shift)


@shifts_group.command('move')
@click.argument('shift_id')
@_actor_options
@click.option('--type', 'movement_type', type=click.Choice(['IN', 'OUT'], case_sensitive=False), required=True)
@click.option('--amount', required=True, help='Amount, e.g. 50.00')
@click.option('--reason', required=True)
@with_appcontext
def add_movement(shift_id, user_id, user_name, movement_type, amount, reason):
    """Record a pay-in or pay-out."""
    try:
        shift = get_shift_manager().add_cash_movement(
            shift_id, movement_type, amount, reason, Actor(user_id, user_name),
        )
    except ShiftError as e:
        _fail(e)
    movement = shift.cash_movements[-1]
    click.echo(f"PASS Recorded {movement.type} {movement.amount} ({movement.reason})")


@shifts_group.command('close')
@click.argument('shift_id')
@_actor_options
@click.option('--counted', required=True, help='Counted drawer cash, e.g. 185.00')
@with_appcontext
def close_shift(shift_id, user_id, user_name, counted):
    """Close a shift and print its report."""
    manager = get_shift_manager()
    try:
        manager.close(shift_id, counted, Actor(user_id, user_name))
    except ShiftError as e:
        _fail(e)
    for line in manager.get_report(shift_id).format_lines(current_app.config["CURRENCY_SYMBOL"]):
        click.echo(line)


@shifts_group.command('summary')
@click.argument('shift_id')
@with_appcontext
def shift_summary(shift_id):
    """Print the wallet summary of a shift."""
    try:
        summary = get_shift_manager().get_summary(shift_id)
    except ShiftError as e:
        _fail(e)
    symbol = current_app.config["CURRENCY_SYMBOL"]
    click.echo(f"Expected cash: {summary.expected_cash.format(symbol)}")
    click.echo(f"Opening float: {summary.starting_cash.format(symbol)}")
    click.echo(f"Cash sales:    {summary.cash_sales.format(symbol)}")
    click.echo(f"Pay in:        {summary.total_in.format(symbol)}")
    click.echo(f"Pay out:       {summary.total_out.format(symbol)}")
    click.echo(f"Card sales:    {summary.card_sales.format(symbol)}")
    click.echo(f"Digital sales: {summary.digital_sales.format(symbol)}")


@shifts_group.command('report')
@click.argument('shift_id')
@with_appcontext
def shift_report(shift_id):
    """Print the end-of-shift report."""
    try:
        report = get_shift_manager().get_report(shift_id)
    except ShiftError as e:
        _fail(e)
    for line in report.format_lines(current_app.config["CURRENCY_SYMBOL"]):
        click.echo(line)


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
