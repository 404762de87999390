"""
Operator commands for the reward oracle.
"""

import asyncio
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .core.config import get_settings
from .core.exceptions import ConfigurationError
from .schemas.reward_config import RewardConfig
from .schemas.worker import WorkerConfig

console = Console()
app = typer.Typer(help="Reward oracle commands")


def _parse_reward_config(raw: bytes) -> RewardConfig:
    try:
        return RewardConfig.model_validate_json(raw)
    except ValidationError as e:
        console.print(f"[red]Invalid reward config:[/red]\n{e}")
        raise typer.Exit(code=1)


@app.command()
def run():
    """Run the oracle until interrupted."""
    from .scheduler.main import main

    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        raise typer.Exit(code=1)

    try:
        asyncio.run(main(settings))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(code=1)


@app.command()
def checksum(path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True)):
    """Print the SHA-256 checksum of a reward config file and validate it."""
    raw = path.read_bytes()
    console.print(f"0x{hashlib.sha256(raw).hexdigest()}")

    config = _parse_reward_config(raw)

    console.print(
        f"legacy chain: {config.has_legacy_chain}, "
        f"excluded: {len(config.exclude_list)}, "
        f"scheduled periods: {len(config.staking_reward_schedule)}, "
        f"claim window: {config.claim_window}"
    )


@app.command("show-period")
def show_period(
    period_id: int,
    first_period_start_time: int = typer.Option(..., min=0, help="UNIX time of period 0"),
    period_duration: int = typer.Option(..., min=1, help="Period length in seconds"),
    count: int = typer.Option(1, min=1, help="Number of periods to show"),
    config: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Reward config file"),
):
    """Show the window (and scheduled reward) of one or more periods."""
    worker_config = WorkerConfig(
        first_period_start_time=first_period_start_time,
        period_duration=period_duration,
        signers=[],
    )
    reward_config = _parse_reward_config(config.read_bytes()) if config else None

    table = Table(title="Periods")
    table.add_column("Period", justify="right")
    table.add_column("Start (UTC)")
    table.add_column("End (UTC)")
    table.add_column("Scheduled reward", justify="right")

    for pid in range(period_id, period_id + count):
        period = worker_config.get_period(pid)
        scheduled = str(reward_config.scheduled_reward(pid)) if reward_config else "-"
        table.add_row(
            str(pid),
            datetime.fromtimestamp(period.start_time, tz=timezone.utc).isoformat(),
            datetime.fromtimestamp(period.end_time, tz=timezone.utc).isoformat(),
            scheduled,
        )

    console.print(table)


if __name__ == "__main__":
    app()
