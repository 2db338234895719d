#!/usr/bin/env python3
"""
Chat Sweeper - Bulk archive or delete ChatGPT conversations from the terminal
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table
import uvicorn

from chat_sweeper.config import Settings, setup_logging
from chat_sweeper.models import MutationKind
from chat_sweeper.results import Err, Result
from chat_sweeper.service import SweeperService
from chat_sweeper.views import filter_by_category, format_days_ago

console = Console()


class ProgressReporter:
    """Turns service progress events into a Rich progress bar"""

    def __init__(self, progress: Progress):
        self.progress = progress
        self.task_id = None

    async def __call__(self, event: str, data: Dict):
        operation, _, stage = event.rpartition('_')

        if stage == 'started':
            if self.task_id is not None:
                self.progress.remove_task(self.task_id)
            description = data.get('message') or f"{operation.capitalize()}..."
            self.task_id = self.progress.add_task(description, total=100)
        elif stage == 'progress' and self.task_id is not None:
            self.progress.update(self.task_id, completed=data.get('percent', 0))
        elif stage == 'completed' and self.task_id is not None:
            self.progress.update(self.task_id, completed=100)


def _read_curl(curl_file: Optional[str]) -> str:
    if curl_file:
        return Path(curl_file).read_text()
    console.print("[cyan]Paste the cURL command for chatgpt.com/backend-api/me, then press Ctrl+D:[/cyan]")
    return sys.stdin.read()


def _report_error(result: Err) -> None:
    console.print(f"[red]Error ({result.kind}): {result.error}[/red]")


def _print_stats(service: SweeperService) -> None:
    stats = service.stats().value

    table = Table(title="Conversation Stats", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan", width=25)
    table.add_column("Value", justify="right", style="green")

    table.add_row("Total Conversations", f"{stats.total:,}")
    table.add_row("First Created", format_days_ago(stats.first_created))
    table.add_row("Last Updated", format_days_ago(stats.latest_updated))
    if stats.category_count:
        table.add_row("Categories", f"{stats.category_count:,}")
    console.print(table)

    if stats.recent:
        console.print("\n[bold cyan]Most recent:[/bold cyan]")
        for conversation in stats.recent:
            console.print(f"  - {conversation.display_title} [dim]({format_days_ago(conversation.update_time)})[/dim]")

    if stats.category_counts:
        categories = Table(title="Categories", show_header=True, header_style="bold cyan")
        categories.add_column("Category", style="cyan")
        categories.add_column("Conversations", justify="right", style="green", width=14)
        for category, count in sorted(stats.category_counts.items(), key=lambda item: item[1], reverse=True):
            categories.add_row(category, f"{count:,}")
        console.print(categories)


def _print_mutation(result: Result) -> None:
    if isinstance(result, Err):
        _report_error(result)
        return

    outcome = result.value
    color = "yellow" if outcome.failed else "green"
    console.print(f"\n[bold {color}]{outcome.summary}[/bold {color}]")
    for failure in outcome.failed:
        console.print(f"  [red]FAILED[/red] {failure.id}: {failure.error}")


async def _sweep_category(
    service: SweeperService,
    progress: Progress,
    kind: MutationKind,
    category: str,
    dry_run: bool
) -> None:
    session = service.session
    targets = filter_by_category(session.conversations, category)
    if not targets:
        console.print(f"[yellow]No conversations in category '{category}'[/yellow]")
        return

    verb = kind.value.upper()
    if dry_run:
        for conversation in targets:
            console.print(f"[red]WOULD {verb}[/red] {conversation.display_title} [dim]({conversation.id})[/dim]")
        console.print(f"\n[bold yellow]DRY RUN:[/bold yellow] {len(targets)} conversation(s) would be "
                      f"{kind.past_tense.lower()}. Run with --no-dry-run to apply.")
        return

    conversation_ids = [conversation.id for conversation in targets]
    if kind is MutationKind.ARCHIVE:
        service.mark_for_archive(conversation_ids)
        with progress:
            result = await service.archive_selected()
    else:
        service.mark_for_delete(conversation_ids)
        with progress:
            result = await service.delete_selected()
    _print_mutation(result)


async def run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    if args.offline:
        settings.use_mock_api = True
    setup_logging(args.log_level or settings.log_level)

    service = SweeperService(settings)
    if args.api_key:
        result = service.set_openai_key(args.api_key)
        if isinstance(result, Err):
            _report_error(result)
            return 1
    if args.prompt_file:
        service.set_custom_prompt(Path(args.prompt_file).read_text(), save=False)

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console
    )
    service.set_progress_callback(ProgressReporter(progress))

    # Authentication
    result = await service.authenticate(_read_curl(args.curl_file))
    if isinstance(result, Err):
        _report_error(result)
        return 1
    profile = result.value
    console.print(f"\n[bold green]Connected as {profile['name']} ({profile['email']})[/bold green]")
    console.print(f"  - Conversations: {profile['conversations_count']:,}")

    # Sync
    with progress:
        result = await service.sync_conversations()
    if isinstance(result, Err):
        _report_error(result)
        return 1

    # Classification
    if args.classify or args.archive_category or args.delete_category:
        with progress:
            result = await service.classify_conversations()
        if isinstance(result, Err):
            _report_error(result)
            return 1

    _print_stats(service)

    if args.archive_category:
        await _sweep_category(service, progress, MutationKind.ARCHIVE, args.archive_category, args.dry_run)
    if args.delete_category:
        await _sweep_category(service, progress, MutationKind.DELETE, args.delete_category, args.dry_run)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""

    parser = argparse.ArgumentParser(description='ChatGPT conversation sweeper - categorize, archive or delete conversations')

    parser.add_argument('--curl-file', type=str,
                        help='File holding the "Copy as cURL" command for /backend-api/me (default: read stdin)')
    parser.add_argument('--classify', action='store_true', help='Categorize conversations after loading them')
    parser.add_argument('--offline', action='store_true', help='Categorize with local keyword rules instead of OpenAI')
    parser.add_argument('--api-key', type=str, help='OpenAI API key (default: OPENAI_API_KEY)')
    parser.add_argument('--prompt-file', type=str, help='Custom categorization prompt containing {{TITLES}}')

    # Cleanup options
    cleanup_group = parser.add_mutually_exclusive_group()
    cleanup_group.add_argument('--archive-category', type=str, help='Archive every conversation in this category')
    cleanup_group.add_argument('--delete-category', type=str, help='Delete every conversation in this category')
    parser.add_argument('--dry-run', action='store_true', help='Only list what would change (default)')
    parser.add_argument('--no-dry-run', dest='dry_run', action='store_false', help='Actually archive/delete conversations')
    parser.set_defaults(dry_run=True)
    parser.add_argument('--log-level', type=str, help='Logging level (default: LOG_LEVEL or INFO)')

    # Web mode
    parser.add_argument('--serve', action='store_true', help='Run the web application instead of the terminal flow')
    parser.add_argument('--host', type=str, default='127.0.0.1', help='Web server host (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=8000, help='Web server port (default: 8000)')

    args = parser.parse_args(argv)

    if args.serve:
        console.print(f"[bold blue]Serving Chat Sweeper on http://{args.host}:{args.port}[/bold blue]")
        uvicorn.run("chat_sweeper.main:app", host=args.host, port=args.port, log_level=(args.log_level or "info").lower())
        return 0

    if args.curl_file and not Path(args.curl_file).exists():
        console.print(f"[red]Error: cURL file not found: {args.curl_file}[/red]")
        return 1

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
