"""
microbatch CLI interface using Typer
"""

import math
import time

import typer
from rich.console import Console
from rich.table import Table

from microbatch.core.batcher import MicroBatcher
from microbatch.utils.config import DEFAULT_BATCH_INTERVAL, DEFAULT_JOB_QUANTITY, BatcherConfig, ConfigurationError
from microbatch.utils.job_factory import DemoJob, create_demo_jobs
from microbatch.utils.logging_config import OperationTimer, error_handler, get_logger, setup_logging

console = Console()
app = typer.Typer(
    name="microbatch",
    help="Micro-batching engine: group jobs into batches and dispatch them on an interval",
    add_completion=False,
    rich_markup_mode="rich",
)


class ConsoleProcessor:
    """Prints each batch; optionally fails every N-th batch"""

    def __init__(self, fail_every: int = 0):
        self.fail_every = fail_every
        self.batch_sizes: list[int] = []

    def execute(self, batch: list[DemoJob]) -> None:
        self.batch_sizes.append(len(batch))
        number = len(self.batch_sizes)

        if self.fail_every and number % self.fail_every == 0:
            msg = f"simulated failure on batch #{number}"
            raise RuntimeError(msg)

        ids = ", ".join(job.job_id for job in batch)
        console.print(f"[green]✓ Batch #{number}[/green] ({len(batch)} jobs): {ids}")


@app.command()
def demo(
    jobs: int = typer.Option(
        25,
        "--jobs",
        "-n",
        min=0,
        help="Number of fake jobs to submit",
    ),
    interval: float = typer.Option(
        DEFAULT_BATCH_INTERVAL,
        "--interval",
        "-i",
        help="Seconds between dispatch cycles",
    ),
    job_quantity: int = typer.Option(
        DEFAULT_JOB_QUANTITY,
        "--job-quantity",
        "-q",
        help="Maximum jobs per batch",
    ),
    fail_every: int = typer.Option(
        0,
        "--fail-every",
        min=0,
        help="Make every N-th batch fail (0 disables)",
    ),
    seed: int = typer.Option(
        None,
        "--seed",
        help="Random seed for job payloads",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Verbose output",
    ),
):
    """
    Submit fake jobs to a micro-batcher and show how they are dispatched.
    """
    try:
        config = BatcherConfig(interval=interval, job_quantity=job_quantity, verbose=verbose)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(2) from e

    setup_logging(config)
    log = get_logger("cli")

    processor = ConsoleProcessor(fail_every=fail_every)
    expected_cycles = math.ceil(jobs / config.job_quantity)

    console.print(f"[bold blue]microbatch v{__import__('microbatch').__version__}[/bold blue]")
    console.print(
        f"Submitting {jobs} job(s): {config.job_quantity} per batch every {config.interval_ms}ms "
        f"({expected_cycles} batch(es) expected)"
    )
    console.print()

    with OperationTimer("demo run", log) as timer:
        batcher = MicroBatcher.from_config(processor, config)
        try:
            batcher.submit_many(create_demo_jobs(jobs, seed=seed))

            # Allow one extra interval plus slack per cycle for processing time
            deadline = time.monotonic() + (expected_cycles + 1) * (config.interval + 0.5)
            while batcher.pending and time.monotonic() < deadline:
                time.sleep(min(config.interval, 0.05))
        finally:
            batcher.shutdown()

    stats = batcher.stats()

    table = Table(title="Dispatch summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Batches dispatched", str(stats["batches_dispatched"]))
    table.add_row("Batches failed", str(stats["batches_failed"]))
    table.add_row("Jobs dispatched", str(stats["jobs_dispatched"]))
    table.add_row("Jobs failed", str(stats["jobs_failed"]))
    table.add_row("Jobs undispatched", str(stats["pending"]))
    table.add_row("Batch sizes", str(processor.batch_sizes))
    table.add_row("Elapsed", f"{timer.duration:.2f}s")

    console.print()
    console.print(table)

    if stats["batches_failed"]:
        summary = error_handler.get_error_summary()
        console.print(f"[yellow]Warning: {summary['total_errors']} batch failure(s) logged[/yellow]")


@app.command("config")
def show_config(
    prefix: str = typer.Option(
        "MICROBATCH_",
        "--prefix",
        help="Environment variable prefix",
    ),
):
    """
    Show the configuration resolved from environment variables.
    """
    try:
        config = BatcherConfig.from_env(prefix=prefix)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(2) from e

    console.print(f"interval: {config.interval}s ({config.interval_ms}ms)")
    console.print(f"job_quantity: {config.job_quantity}")
    console.print(f"verbose: {config.verbose}")


if __name__ == "__main__":
    app()
