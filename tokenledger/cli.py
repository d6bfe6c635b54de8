"""Main CLI entry point."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tokenledger.services.clock import Clock, ManualClock

app = typer.Typer(
    name="tokenledger",
    help="Token vesting and staking reward ledger CLI",
    add_completion=False,
)

console = Console()


def _view_clock(at: Optional[int], block: Optional[int] = None) -> Clock | None:
    """Frozen clock for ``--at``/``--block`` views; None means wall-clock time."""
    if at is None and block is None:
        return None
    return ManualClock(block_number=block or 0, timestamp=at or 0)


@app.command()
def init_db(
    force: bool = typer.Option(False, "--force", "-f", help="Drop and recreate tables"),
):
    """Initialize the database schema."""
    from db.connection import init_database

    with console.status("Initializing database..."):
        init_database(force=force)
    if force:
        console.print("[yellow]Dropped existing tables[/yellow]")
    console.print("[green]Database initialized successfully[/green]")


@app.command("lock-info")
def lock_info(
    lock_id: int = typer.Argument(..., help="Lock id"),
    at: Optional[int] = typer.Option(None, "--at", help="Evaluate at this timestamp"),
):
    """Show one lock schedule and its releasable amount."""
    from db.connection import get_session
    from tokenledger.services.errors import LockNotFound
    from tokenledger.services.ledgers import vesting_ledger

    with get_session() as session:
        ledger = vesting_ledger(session, clock=_view_clock(at))
        try:
            status = ledger.lock_status(lock_id)
        except LockNotFound as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=1)
        info = ledger.lock_info(lock_id)
        available = ledger.get_available_amount(lock_id)
        next_unlock = ledger.next_unlock_time(lock_id)

    table = Table(title=f"Lock {lock_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Asset", info["asset"])
    table.add_row("Beneficiary", info["beneficiary"])
    table.add_row("Status", status.value)
    table.add_row("Total", str(info["total_amount"]))
    table.add_row("Released", str(info["released"]))
    table.add_row("Available", str(available))
    table.add_row("Cliff", str(info["cliff_time"]))
    table.add_row("Periodicity", str(info["periodicity"]))
    table.add_row("Duration", str(info["duration"]))
    table.add_row("Next Unlock", str(next_unlock) if next_unlock is not None else "-")

    console.print(table)


@app.command()
def locks(
    beneficiary: Optional[str] = typer.Option(None, "--beneficiary", "-b", help="Filter by beneficiary"),
    at: Optional[int] = typer.Option(None, "--at", help="Evaluate at this timestamp"),
):
    """List lock schedules."""
    from db.connection import get_session
    from tokenledger.services.ledgers import vesting_ledger

    with get_session() as session:
        ledger = vesting_ledger(session, clock=_view_clock(at))
        owners = [beneficiary] if beneficiary else ledger.beneficiaries()
        rows = [
            (info, ledger.get_available_amount(info["id"]))
            for owner in owners
            for info in ledger.locks_of(owner)
        ]

    if not rows:
        console.print("[yellow]No locks found[/yellow]")
        return

    table = Table(title="Locks")
    table.add_column("ID", style="dim")
    table.add_column("Beneficiary", style="cyan")
    table.add_column("Asset")
    table.add_column("Total", justify="right")
    table.add_column("Released", justify="right")
    table.add_column("Available", justify="right", style="green")
    table.add_column("Cliff", justify="right")

    for info, available in sorted(rows, key=lambda r: r[0]["id"]):
        table.add_row(
            str(info["id"]),
            info["beneficiary"],
            info["asset"],
            str(info["total_amount"]),
            str(info["released"]),
            str(available),
            str(info["cliff_time"]),
        )

    console.print(table)


@app.command("pool-info")
def pool_info(
    pool_id: int = typer.Argument(0, help="Pool id"),
):
    """Show a stake pool."""
    from db.connection import get_session
    from tokenledger.services.ledgers import reward_ledger

    with get_session() as session:
        ledger = reward_ledger(session)
        if not 0 <= pool_id < ledger.pool_count():
            console.print(f"[red]Pool {pool_id} does not exist[/red]")
            raise typer.Exit(code=1)
        info = ledger.pool_info(pool_id)
        asset = ledger.reward_asset()
        start = ledger.start_block()

    table = Table(title=f"Pool {pool_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Reward Asset", asset or "-")
    table.add_row("Start Block", str(start))
    table.add_row("Reward / Block", str(info["reward_rate_per_block"]))
    table.add_row("Last Reward Block", str(info["last_reward_block"]))
    table.add_row("Acc Reward / Share", str(info["acc_reward_per_share"]))
    table.add_row("Total Staked", str(info["total_staked"]))
    table.add_row("Total Reward Accrued", str(info["total_reward_accrued"]))
    table.add_row("Lock Duration", str(info["lock_duration"]))

    console.print(table)


@app.command()
def pending(
    account: str = typer.Argument(..., help="Depositor account"),
    pool_id: int = typer.Option(0, "--pool", "-p", help="Pool id"),
    block: Optional[int] = typer.Option(None, "--block", help="Evaluate at this block"),
):
    """Show an account's stake and claimable reward."""
    from db.connection import get_session
    from tokenledger.services.ledgers import reward_ledger

    with get_session() as session:
        ledger = reward_ledger(session, clock=_view_clock(None, block))
        info = ledger.user_info(pool_id, account)
        reward = ledger.pending_rewards(pool_id, account)

    console.print(f"[bold]Pool {pool_id}[/bold] {account}")
    console.print(f"  Staked:    {info['amount']}")
    console.print(f"  Withdrawn: {info['pending_withdrawn']}")
    console.print(f"  [green]Pending:   {reward}[/green]")


@app.command()
def events(
    event_type: Optional[str] = typer.Option(None, "--type", "-t", help="Filter by event type"),
    subject: Optional[str] = typer.Option(None, "--subject", "-s", help="Filter by subject"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum rows"),
):
    """Show recent ledger events."""
    from db.connection import get_session
    from db.enums import EventType
    from tokenledger.services.events import list_events

    try:
        kind = EventType(event_type) if event_type else None
    except ValueError:
        raise typer.BadParameter(
            f"Unknown event type '{event_type}'. Expected one of: {', '.join(e.value for e in EventType)}"
        )

    with get_session() as session:
        rows = list_events(session, event_type=kind, subject=subject, limit=limit)

    if not rows:
        console.print("[yellow]No events found[/yellow]")
        return

    table = Table(title="Ledger Events")
    table.add_column("ID", style="dim")
    table.add_column("Block", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Subject")
    table.add_column("Payload")

    for row in rows:
        payload = ", ".join(f"{k}={v}" for k, v in (row["payload"] or {}).items())
        table.add_row(str(row["id"]), str(row["block_number"]), row["event_type"], row["subject"], payload)

    console.print(table)


if __name__ == "__main__":
    app()
