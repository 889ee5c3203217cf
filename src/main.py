"""
Main CLI entry point for the participation report service.

Usage:
    python src/main.py api --port 8000
    python src/main.py scheduler
    python src/main.py export <course_id>
    python src/main.py export <course_id> --config-id legacy-0
    python src/main.py run-all
    python src/main.py logs --course <course_id>
"""

import asyncio
import sys
import argparse

from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from config.settings import get_settings
from config.constants import DEFAULT_LOG_LIMIT
from config.logging_config import setup_structured_logging


def _bootstrap(serialize: bool = False):
    """Configure logging and the database, then build the executor."""
    from db import init_db
    from services.factory import create_export_executor

    settings = get_settings()
    setup_structured_logging(level=settings.log_level, log_file=settings.log_file, serialize=serialize)
    init_db()
    return settings, create_export_executor(settings)


async def command_export(args):
    """Send the reports of one course now (manual trigger)."""
    from core.models import ExportContext

    console = Console()
    _, executor = _bootstrap()

    context = ExportContext.manual(user_id=args.user, username=args.user)
    result = await executor.run_export(args.course_id, context, args.config_id)

    if result.success:
        console.print(f"[green]✓ {result.message}[/green]")
        return 0

    console.print(f"[red]✗ {result.message}[/red]")
    return 1


async def command_run_all(args):
    """Run every course having an enabled export configuration."""
    console = Console()
    _, executor = _bootstrap()

    counts = await executor.run_all_active_exports()

    table = Table(title="Exports")
    table.add_column("Courses", style="cyan")
    table.add_column("Success", style="green")
    table.add_column("Failed", style="red")
    table.add_row(str(counts["total"]), str(counts["success"]), str(counts["failed"]))
    console.print(table)

    return 0 if counts["failed"] == 0 else 1


async def command_scheduler(args):
    """Run the export scheduler until interrupted."""
    from services.factory import create_export_scheduler

    console = Console()
    settings, executor = _bootstrap(serialize=True)

    scheduler = create_export_scheduler(executor, settings)
    console.print(Panel(
        f"Tick every {settings.scheduler_interval_seconds:g}s, "
        f"jitter up to {settings.scheduler_max_jitter_seconds:g}s",
        title="Export scheduler"
    ))

    task = scheduler.start()
    try:
        await task
    except asyncio.CancelledError:
        pass
    finally:
        await scheduler.stop()
        executor.metrics.log_metrics()

    return 0


def command_logs(args):
    """Show the most recent Export Log entries."""
    from db import init_db
    from storage.export_log_store import ExportLogStore

    console = Console()
    init_db()

    entries = ExportLogStore().list_recent(args.course, args.limit)
    if not entries:
        console.print("[yellow]No exports logged.[/yellow]")
        return 0

    table = Table(title="Export log")
    table.add_column("Date", style="green")
    table.add_column("Course", style="cyan")
    table.add_column("Label")
    table.add_column("Trigger", style="yellow")
    table.add_column("Recipients")
    table.add_column("Result")

    for entry in entries:
        user = f" ({entry.username or entry.user_id})" if entry.user_id else ""
        outcome = "[green]ok[/green]" if entry.success else f"[red]{entry.error_message or 'failed'}[/red]"
        table.add_row(
            str(entry.created_at)[:19],
            entry.course_id,
            entry.label,
            f"{entry.triggered_by.value}{user}",
            str(entry.recipient_count),
            outcome
        )

    console.print(table)
    return 0


def command_api(args):
    """Start the API server."""
    import uvicorn

    console = Console()

    console.print(f"[bold green]Starting API server[/bold green]")
    console.print(f"Host: {args.host}")
    console.print(f"Port: {args.port}")
    console.print(f"Docs: http://{args.host}:{args.port}/docs")
    if args.workers > 1 and not get_settings().disable_export_scheduler:
        console.print("[yellow]Each worker runs its own scheduler; exports are deduplicated through the Export Log.[/yellow]")

    uvicorn.run(
        "api.app:get_app",
        factory=True,
        host=args.host,
        port=args.port,
        workers=args.workers
    )

    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Participation reports - scheduled and manual score exports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s api --port 8000
  %(prog)s scheduler
  %(prog)s export form_1
  %(prog)s export form_1 --config-id legacy-0 --user admin
  %(prog)s run-all
  %(prog)s logs --course form_1 --limit 20

Note on the scheduler:
  The scheduler also runs inside the API server unless
  REPORTS_DISABLE_EXPORT_SCHEDULER=true. Several instances may run at
  once: a configuration already sent in the last 5 minutes is skipped.
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # API command
    api_parser = subparsers.add_parser("api", help="Start API server")
    api_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to"
    )
    api_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to"
    )
    api_parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of workers"
    )

    # Scheduler command
    subparsers.add_parser("scheduler", help="Run the export scheduler")

    # Export command
    export_parser = subparsers.add_parser("export", help="Send the reports of a course now")
    export_parser.add_argument("course_id", help="Course ID")
    export_parser.add_argument(
        "--config-id",
        help="Only this export configuration (id, or legacy-<index>)"
    )
    export_parser.add_argument(
        "--user",
        default="cli",
        help="Acting user recorded in the export log"
    )

    # Run-all command
    subparsers.add_parser("run-all", help="Export every course with an enabled configuration")

    # Logs command
    logs_parser = subparsers.add_parser("logs", help="Show recent exports")
    logs_parser.add_argument("--course", help="Course ID")
    logs_parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_LOG_LIMIT,
        help="Number of entries"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    # Execute command
    if args.command == "export":
        return asyncio.run(command_export(args))
    elif args.command == "run-all":
        return asyncio.run(command_run_all(args))
    elif args.command == "scheduler":
        try:
            return asyncio.run(command_scheduler(args))
        except KeyboardInterrupt:
            return 0
    elif args.command == "logs":
        return command_logs(args)
    elif args.command == "api":
        return command_api(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
