"""Probe orchestration: run the stage sequence for one environment and build the report."""

import logging
from datetime import datetime
from typing import Callable, List, Optional

import httpx

from .models import CheckResult, CheckStatus, EnvironmentConfig, Report
from .stages import Stage, StageContext, build_stages, SKIPPED_URL_NOTE
from .strategy import ProbeStrategy, StrategyPreference, select_strategy

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[CheckResult], None]


class ProbeOrchestrator:
    """
    Runs the fixed stage sequence against one environment configuration.

    Usage:
        orchestrator = ProbeOrchestrator(strategy=StrategyPreference.AUTO)
        report = await orchestrator.run(config)
        print(report.verdict)
    """

    def __init__(
        self,
        strategy: StrategyPreference = StrategyPreference.AUTO,
        headless: bool = True,
        browser_name: str = "chromium",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        strategy_factory: Optional[Callable[[], ProbeStrategy]] = None,
        stage_factory: Callable[[], List[Stage]] = build_stages,
    ):
        """
        Args:
            strategy: auto, browser or static
            headless: Run the browser without a window
            browser_name: Playwright browser to launch
            transport: Optional httpx transport for direct fetches
            strategy_factory: Overrides strategy selection entirely
            stage_factory: Produces the stage sequence for each run
        """
        self.preference = StrategyPreference(strategy)
        self.headless = headless
        self.browser_name = browser_name
        self.transport = transport
        self.strategy_factory = strategy_factory
        self.stage_factory = stage_factory

    def _create_strategy(self) -> ProbeStrategy:
        if self.strategy_factory:
            return self.strategy_factory()
        return select_strategy(
            self.preference,
            headless=self.headless,
            browser_name=self.browser_name,
            transport=self.transport,
        )

    async def run(
        self,
        config: EnvironmentConfig,
        on_result: Optional[ProgressCallback] = None,
    ) -> Report:
        """
        Probe an environment.

        Stage failures are recorded in the report. If the UI stage fails, the
        remaining stages are recorded as skipped failures so the report always
        has the same checks.

        Args:
            config: Environment to probe
            on_result: Called with each check result as it is produced

        Returns:
            The completed Report

        Raises:
            OperationalError: The strategy could not be started or failed fatally
        """
        logger.info(f"Starting probe of {config.target_url} ({config.name or 'unnamed environment'})")

        # Selected once; every stage of this run uses the same strategy.
        strategy = self._create_strategy()
        stages = self.stage_factory()
        report = Report(strategy=strategy.name, started_at=datetime.now())

        def record(result: CheckResult):
            report.add(result)
            if on_result:
                on_result(result)

        async with strategy:
            context = StageContext(config=config, strategy=strategy)
            first, remaining = stages[0], stages[1:]

            ui_result = await first.execute(context)
            record(ui_result)

            if ui_result.status == CheckStatus.FAIL:
                logger.warning(f"Target not accessible, skipping {len(remaining)} remaining stages")
                for stage in remaining:
                    record(stage.skip(SKIPPED_URL_NOTE))
            else:
                for stage in remaining:
                    record(await stage.execute(context))

        report.finalize()
        logger.info(
            f"Probe finished: {report.verdict.value} "
            f"({len(report.passed_checks)} pass, {len(report.warning_checks)} warning, "
            f"{len(report.failed_checks)} fail)"
        )
        return report
