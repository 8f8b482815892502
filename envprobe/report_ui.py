"""Terminal rendering of probe reports, history and environments using rich."""

from typing import Dict, List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markdown import Markdown
from rich import box

from .analyzer import AnalysisResult, OllamaStatus
from .config import EnvironmentSettings
from .models import ArchiveRecord, CheckResult, CheckStatus, Report, RunRecord, Verdict


STATUS_DISPLAY = {
    CheckStatus.PASS.value: "[green]✅ PASS[/green]",
    CheckStatus.WARNING.value: "[yellow]⚠️  WARNING[/yellow]",
    CheckStatus.FAIL.value: "[red]❌ FAIL[/red]",
}


def status_display(status) -> str:
    value = status.value if isinstance(status, CheckStatus) else str(status)
    return STATUS_DISPLAY.get(value, f"[red]❌ {value}[/red]")


def verdict_display(verdict) -> str:
    value = verdict.value if isinstance(verdict, Verdict) else str(verdict)
    if value == Verdict.GO.value:
        return "[bold green]GO[/bold green]"
    return "[bold red]NO-GO[/bold red]"


class ReportUI:
    """Renders probe output to the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_check_progress(self, result: CheckResult) -> None:
        """One line per completed check while a run is in progress."""
        self.console.print(f"  {status_display(result.status)} {result.name} [dim]({result.latency})[/dim]")

    def display_report(self, report: Report, title: str = "Environment Health Report") -> None:
        """Display the check table and the overall verdict.

        Args:
            report: Completed report
            title: Table title, usually naming the environment
        """
        table = Table(title=title, box=box.ROUNDED)

        table.add_column("Check", style="cyan", no_wrap=True)
        table.add_column("Status", justify="center")
        table.add_column("Latency", justify="right", style="blue")
        table.add_column("Notes", style="white")

        for check in report.checks:
            table.add_row(check.name, status_display(check.status), check.latency, check.notes)

        self.console.print()
        self.console.print(table)

        verdict = report.verdict
        border = "green" if verdict == Verdict.GO else "red"
        summary = (
            f"[bold]OVERALL STATUS:[/bold] {verdict_display(verdict)}\n"
            f"Passed: {len(report.passed_checks)}  "
            f"Warnings: {len(report.warning_checks)}  "
            f"Failed: {len(report.failed_checks)}"
        )
        if report.strategy:
            summary += f"\nStrategy: {report.strategy}"

        self.console.print(Panel(summary, border_style=border, box=box.ROUNDED))
        self.console.print()

    def display_analysis(self, result: AnalysisResult) -> None:
        self.console.print(Panel(
            Markdown(result.analysis),
            title=f"AI Analysis ({result.model})",
            border_style="magenta",
            box=box.ROUNDED,
        ))

    def display_history(self, runs: List[RunRecord]) -> None:
        """Display stored runs, newest first."""
        if not runs:
            self.console.print("[yellow]No runs recorded yet[/yellow]")
            return

        table = Table(title="Run History", box=box.ROUNDED)
        table.add_column("Run ID", style="dim", no_wrap=True)
        table.add_column("When", style="cyan")
        table.add_column("Environment", style="white")
        table.add_column("URL", style="blue")
        table.add_column("Strategy", justify="center")
        table.add_column("Verdict", justify="center")

        for run in runs:
            table.add_row(
                run.run_id[:8],
                run.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                run.environment or "-",
                run.target_url,
                run.strategy or "-",
                verdict_display(run.verdict),
            )

        self.console.print(table)

    def display_archive(self, records: List[ArchiveRecord]) -> None:
        if not records:
            self.console.print("[yellow]No archived environments[/yellow]")
            return

        table = Table(title="Archived Environments", box=box.ROUNDED)
        table.add_column("Name", style="cyan")
        table.add_column("Archived At", style="white")
        table.add_column("Base URL", style="blue")

        for record in records:
            settings = record.get_settings()
            table.add_row(
                record.name,
                record.archived_at.strftime("%Y-%m-%d %H:%M:%S"),
                settings.get("base_url") or "-",
            )

        self.console.print(table)

    def display_environments(self, environments: Dict[str, EnvironmentSettings]) -> None:
        if not environments:
            self.console.print("[yellow]No environments configured[/yellow]")
            return

        table = Table(title="Configured Environments", box=box.ROUNDED)
        table.add_column("Name", style="cyan")
        table.add_column("Base URL", style="blue")
        table.add_column("API", style="white")
        table.add_column("Login", justify="center")

        for name, settings in environments.items():
            if settings.is_empty:
                table.add_row(name, "[dim]not configured[/dim]", "-", "-")
                continue
            has_login = any([settings.selector_user, settings.selector_pass, settings.selector_btn])
            table.add_row(
                name,
                settings.base_url or "[dim]not set[/dim]",
                settings.api_endpoint or "-",
                "[green]✓[/green]" if has_login else "-",
            )

        self.console.print(table)

    def display_ollama_status(self, status: OllamaStatus) -> None:
        if not status.connected:
            self.console.print(f"[red]❌ Ollama not connected[/red] ({status.host})")
            if status.error:
                self.console.print(f"   {status.error}")
            return

        self.console.print(f"[green]✅ Ollama connected[/green] ({status.host})")
        if status.model_available:
            self.console.print(f"[green]✅ Model available:[/green] {status.model}")
        else:
            self.console.print(f"[yellow]⚠️  Model not found:[/yellow] {status.model}")
            self.console.print(f"   To download it, run: ollama pull {status.model}")

        if status.models:
            self.console.print(f"Installed models: {', '.join(status.models)}")

    def display_error(self, message: str) -> None:
        self.console.print(f"[red]Error: {message}[/red]")
