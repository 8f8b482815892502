"""EnvProbe - Main CLI Entry Point

Probes a deployed web environment and prints a GO/NO-GO health report.
Exit codes: 0 GO, 1 NO-GO, 2 configuration or operational error.
"""

import asyncio
import os
import sys
import logging
from pathlib import Path
from typing import Optional, Dict

import click
from rich.console import Console
from rich.panel import Panel

from envprobe import __version__
from envprobe.config import AppConfig, ConfigLoader, EnvironmentSettings, get_default_config, resolve_environment
from envprobe.exceptions import ConfigError, DatabaseError, OperationalError
from envprobe.history import HistoryStore
from envprobe.llm_client import OllamaClient, OllamaConnectionError, OllamaGenerationError, OllamaModelNotFoundError
from envprobe.analyzer import ReportAnalyzer, ollama_status
from envprobe.models import EnvironmentConfig, Report, Verdict
from envprobe.probe import ProbeOrchestrator
from envprobe.report_ui import ReportUI

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/envprobe-config.yaml"

EXIT_GO = 0
EXIT_NO_GO = 1
EXIT_ERROR = 2


class EnvProbeCLI:
    """Main CLI application."""

    def __init__(self, config_path: Optional[str] = None, console: Optional[Console] = None):
        """Initialize CLI application.

        Args:
            config_path: Optional path to configuration file
            console: Console to render to
        """
        self.console = console or Console()
        self.ui = ReportUI(self.console)
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.config: Optional[AppConfig] = None

    @property
    def local_override_path(self) -> str:
        """Machine-local settings next to the main config, e.g. envprobe-config.local.yaml."""
        return str(Path(self.config_path).with_suffix(".local.yaml"))

    def load_configuration(self) -> AppConfig:
        """Load configuration, falling back to defaults when the file is absent.

        Raises:
            ConfigError: The file exists but is invalid
        """
        if Path(self.config_path).exists():
            self.config = ConfigLoader.load_config(self.config_path, self.local_override_path)
        elif Path(self.local_override_path).exists():
            self.config = ConfigLoader.load_config(self.local_override_path)
        else:
            logger.debug(f"No config file at {self.config_path}, using defaults")
            self.config = get_default_config()

        self._setup_logging()
        return self.config

    def _setup_logging(self):
        """Setup logging based on configuration."""
        if not self.config:
            return

        log_config = self.config.logging
        log_level = getattr(logging, log_config.level.upper(), logging.INFO)

        log_path = Path(log_config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(log_config.file_path),
                logging.StreamHandler() if log_config.console_enabled else logging.NullHandler()
            ]
        )

        logger.info(f"Logging initialized (level={log_config.level}, file={log_config.file_path})")

    def build_environment(
        self,
        env_name: Optional[str],
        overrides: Dict[str, Optional[str]],
    ) -> EnvironmentConfig:
        """Resolve the EnvironmentConfig for this run.

        The process environment is read here and nowhere else.
        """
        settings: Optional[EnvironmentSettings] = None
        if env_name:
            settings = self.config.get_environment(env_name)

        return resolve_environment(
            settings=settings,
            overrides=overrides,
            environ=os.environ,
            name=env_name,
        )

    async def run_probe(
        self,
        environment: EnvironmentConfig,
        strategy: Optional[str],
        headless: Optional[bool],
        show_progress: bool,
    ) -> Report:
        probe_settings = self.config.probe
        orchestrator = ProbeOrchestrator(
            strategy=strategy or probe_settings.strategy,
            headless=probe_settings.headless if headless is None else headless,
            browser_name=probe_settings.browser,
        )

        on_result = self.ui.display_check_progress if show_progress else None
        return await orchestrator.run(environment, on_result=on_result)

    async def save_run(self, report: Report, environment: EnvironmentConfig):
        history = self.config.history
        async with HistoryStore(history.db_path, history.history_limit) as store:
            return await store.save_run(report, environment.name, environment.target_url)

    async def analyze(self, report: Report, environment: EnvironmentConfig):
        llm = self.config.llm
        async with OllamaClient(host=llm.host, timeout=llm.timeout) as client:
            analyzer = ReportAnalyzer(
                client,
                model=llm.model,
                temperature=llm.temperature,
                max_tokens=llm.max_tokens,
            )
            return await analyzer.analyze(report, environment.name, environment.target_url)


@click.group()
@click.version_option(__version__, prog_name="envprobe")
@click.option('--config', '-c', default=DEFAULT_CONFIG_PATH, help='Path to configuration file')
@click.pass_context
def cli(ctx, config):
    """EnvProbe - Environment health checks with a GO/NO-GO verdict.

    Checks the UI entrypoint, login form, backend API and browser console of a
    deployed environment and reports whether it is fit to release against.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config


@cli.command()
@click.option('--env', '-e', 'env_name', help='Named environment from the config file')
@click.option('--url', help='Target URL (overrides the environment)')
@click.option('--api', 'api_endpoint', help='Backend API endpoint (defaults to the target URL)')
@click.option('--strategy', type=click.Choice(['auto', 'browser', 'static']), default=None,
              help='Execution strategy (default from config)')
@click.option('--headless/--headed', default=None, help='Run the browser without a window')
@click.option('--json', 'as_json', is_flag=True, help='Print the report as JSON')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the JSON report to a file')
@click.option('--save/--no-save', default=True, help='Record the run in history')
@click.option('--analyze', is_flag=True, help='Ask the local Ollama model for an analysis')
@click.pass_context
def run(ctx, env_name, url, api_endpoint, strategy, headless, as_json, output, save, analyze):
    """Probe an environment and print the health report.

    Settings are taken from --url/--api first, then the named environment,
    then BASE_URL, API_ENDPOINT, LOGIN_USERNAME, LOGIN_PASSWORD, DASHBOARD_URL,
    SELECTOR_USERNAME, SELECTOR_PASSWORD, SELECTOR_LOGIN_BTN and ERROR_MSG.
    """
    # With --json, stdout carries only the report
    console = Console(stderr=True) if as_json else None
    app = EnvProbeCLI(ctx.obj['config_path'], console=console)

    try:
        config = app.load_configuration()
        environment = app.build_environment(env_name, {"base_url": url, "api_endpoint": api_endpoint})

        if not as_json:
            label = environment.name or environment.target_url
            app.console.print(f"[cyan]🔍 Probing {label}...[/cyan]")

        report = asyncio.run(app.run_probe(environment, strategy, headless, show_progress=not as_json))

    except (ConfigError, OperationalError) as e:
        logger.error(f"Run aborted: {e}")
        app.ui.display_error(str(e))
        sys.exit(EXIT_ERROR)
    except KeyboardInterrupt:
        app.console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        logger.exception("Unexpected error in run command")
        print(f"Error: {str(e)}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    if as_json:
        click.echo(report.to_json())
    else:
        title = f"{environment.name} Health Report" if environment.name else "Environment Health Report"
        app.ui.display_report(report, title=title)

    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(report.to_json(), encoding='utf-8')
        logger.info(f"Report written to {output}")

    if save and config.history.enabled:
        try:
            asyncio.run(app.save_run(report, environment))
        except DatabaseError as e:
            # History is a convenience; the verdict still stands
            logger.error(f"Could not record run: {e}")
            app.ui.display_error(str(e))

    if analyze:
        if not config.llm.enabled:
            app.console.print("[yellow]LLM analysis is disabled in the configuration[/yellow]")
        else:
            try:
                result = asyncio.run(app.analyze(report, environment))
                app.ui.display_analysis(result)
            except (OllamaConnectionError, OllamaModelNotFoundError, OllamaGenerationError) as e:
                logger.warning(f"Analysis unavailable: {e}")
                app.console.print(f"[yellow]⚠️  Analysis unavailable: {e}[/yellow]")

    sys.exit(EXIT_GO if report.verdict == Verdict.GO else EXIT_NO_GO)


@cli.command()
@click.option('--env', '-e', 'env_name', help='Only runs for this environment')
@click.option('--limit', '-n', default=20, show_default=True, help='Number of runs to show')
@click.pass_context
def history(ctx, env_name, limit):
    """Show recent probe runs, newest first."""
    app = EnvProbeCLI(ctx.obj['config_path'])

    try:
        config = app.load_configuration()

        async def _list():
            async with HistoryStore(config.history.db_path, config.history.history_limit) as store:
                return await store.list_runs(environment=env_name, limit=limit)

        app.ui.display_history(asyncio.run(_list()))

    except (ConfigError, DatabaseError) as e:
        logger.error(f"Failed to show history: {e}")
        app.ui.display_error(str(e))
        sys.exit(EXIT_ERROR)


@cli.command()
@click.option('--limit', '-n', default=20, show_default=True, help='Number of entries to show')
@click.pass_context
def archive(ctx, limit):
    """Show archived environment configurations."""
    app = EnvProbeCLI(ctx.obj['config_path'])

    try:
        config = app.load_configuration()

        async def _list():
            async with HistoryStore(config.history.db_path, config.history.history_limit) as store:
                return await store.list_archive(limit=limit)

        app.ui.display_archive(asyncio.run(_list()))

    except (ConfigError, DatabaseError) as e:
        logger.error(f"Failed to show archive: {e}")
        app.ui.display_error(str(e))
        sys.exit(EXIT_ERROR)


@cli.command('archive-env')
@click.argument('name')
@click.pass_context
def archive_env(ctx, name):
    """Archive a named environment's settings with a timestamp."""
    app = EnvProbeCLI(ctx.obj['config_path'])

    try:
        config = app.load_configuration()
        settings = config.get_environment(name)

        async def _archive():
            async with HistoryStore(config.history.db_path, config.history.history_limit) as store:
                return await store.archive_environment(name, settings.to_archive_dict())

        record = asyncio.run(_archive())
        app.console.print(
            f"[green]✓ Archived {record.name} at {record.archived_at.strftime('%Y-%m-%d %H:%M:%S')}[/green]"
        )

    except (ConfigError, DatabaseError) as e:
        logger.error(f"Failed to archive environment {name}: {e}")
        app.ui.display_error(str(e))
        sys.exit(EXIT_ERROR)


@cli.command('save-env')
@click.argument('name')
@click.option('--url', 'base_url', help='Target URL')
@click.option('--api', 'api_endpoint', help='Backend API endpoint')
@click.option('--username', help='Login username for the valid-login check')
@click.option('--password', help='Login password for the valid-login check')
@click.option('--dashboard-url', help='URL expected after a successful login')
@click.option('--selector-user', help='Username field locator (CSS or XPath)')
@click.option('--selector-pass', help='Password field locator (CSS or XPath)')
@click.option('--selector-btn', help='Login button locator (CSS or XPath)')
@click.option('--error-msg', help='Text shown after an invalid login')
@click.pass_context
def save_env(ctx, name, **fields):
    """Save a named environment to the local config override.

    Only the given options are written; settings already saved for the
    environment are kept. The file sits next to the main config with a
    .local.yaml suffix.
    """
    app = EnvProbeCLI(ctx.obj['config_path'])

    try:
        config = app.load_configuration()
        # Update an existing environment under its configured spelling
        existing = [env for env in config.environments if env.lower() == name.lower()]
        env_name = existing[0] if existing else name

        settings = EnvironmentSettings(**{key: value for key, value in fields.items() if value is not None})
        ConfigLoader.save_environment(env_name, settings, app.local_override_path)
        app.console.print(f"[green]✓ Saved environment {env_name} to {app.local_override_path}[/green]")

    except ConfigError as e:
        logger.error(f"Failed to save environment {name}: {e}")
        app.ui.display_error(str(e))
        sys.exit(EXIT_ERROR)


@cli.command()
@click.argument('run_id')
@click.option('--json', 'as_json', is_flag=True, help='Print the stored report as JSON')
@click.pass_context
def show(ctx, run_id, as_json):
    """Show a stored report by run ID (the short ID from history works)."""
    app = EnvProbeCLI(ctx.obj['config_path'])

    try:
        config = app.load_configuration()

        async def _get():
            async with HistoryStore(config.history.db_path, config.history.history_limit) as store:
                return await store.get_run(run_id)

        record = asyncio.run(_get())

    except (ConfigError, DatabaseError) as e:
        logger.error(f"Failed to load run {run_id}: {e}")
        app.ui.display_error(str(e))
        sys.exit(EXIT_ERROR)

    if record is None:
        app.ui.display_error(f"No run found for {run_id}")
        sys.exit(EXIT_ERROR)

    report = record.get_report()
    if as_json:
        click.echo(report.to_json())
    else:
        label = record.environment or record.target_url
        app.ui.display_report(report, title=f"{label} Health Report ({record.created_at:%Y-%m-%d %H:%M})")


@cli.command()
@click.pass_context
def envs(ctx):
    """List configured environments."""
    app = EnvProbeCLI(ctx.obj['config_path'])

    try:
        config = app.load_configuration()
    except ConfigError as e:
        app.ui.display_error(str(e))
        sys.exit(EXIT_ERROR)

    app.ui.display_environments(config.environments)


@cli.command('ollama-status')
@click.pass_context
def ollama_status_command(ctx):
    """Check the Ollama service and whether the analysis model is installed."""
    app = EnvProbeCLI(ctx.obj['config_path'])

    try:
        config = app.load_configuration()
    except ConfigError as e:
        app.ui.display_error(str(e))
        sys.exit(EXIT_ERROR)

    async def _status():
        async with OllamaClient(host=config.llm.host, timeout=config.llm.timeout) as client:
            return await ollama_status(client, config.llm.model)

    status = asyncio.run(_status())
    app.ui.display_ollama_status(status)

    if not status.connected:
        app.console.print(Panel(
            f"Start Ollama and pull the model with: [bold]ollama run {config.llm.model}[/bold]",
            border_style="yellow"
        ))
        sys.exit(1)


if __name__ == '__main__':
    cli(obj={})
