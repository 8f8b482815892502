"""Narrative analysis of probe reports using a local Ollama model."""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader
from pydantic import BaseModel, Field

from .llm_client import OllamaClient
from .models import Report

logger = logging.getLogger(__name__)


DEFAULT_TEMPLATE_DIR = Path(__file__).parent.parent / "templates"
NO_ANALYSIS = "No analysis generated"


class AnalysisResult(BaseModel):
    """LLM-written summary of one report."""
    analysis: str
    model: str
    created_at: datetime = Field(default_factory=datetime.now)


class OllamaStatus(BaseModel):
    """Connectivity and model availability of the Ollama service."""
    connected: bool
    host: str
    model: str
    model_available: bool = False
    models: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class ReportAnalyzer:
    """Builds the analysis prompt for a report and asks the model for a summary."""

    def __init__(
        self,
        llm_client: OllamaClient,
        model: str = "llama3.2",
        temperature: float = 0.7,
        max_tokens: int = 500,
        template_dir: Optional[Path] = None,
    ):
        self.llm_client = llm_client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        template_dir = template_dir or DEFAULT_TEMPLATE_DIR
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def build_prompt(self, report: Report, env_name: Optional[str], target_url: Optional[str]) -> str:
        template = self.jinja_env.get_template("analysis_prompt.j2")
        return template.render(
            env_name=env_name,
            target_url=target_url,
            strategy=report.strategy,
            verdict=report.verdict.value,
            checks=[c.to_dict() for c in report.checks],
            passed=report.passed_checks,
            warnings=report.warning_checks,
            failed=report.failed_checks,
        )

    async def analyze(
        self,
        report: Report,
        env_name: Optional[str] = None,
        target_url: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Generate a Markdown analysis of a report.

        Raises:
            OllamaConnectionError, OllamaModelNotFoundError, OllamaGenerationError
        """
        prompt = self.build_prompt(report, env_name, target_url)
        logger.info(f"Requesting report analysis from {self.model}")

        response = await self.llm_client.generate(
            model=self.model,
            prompt=prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        text = response.text.strip() or NO_ANALYSIS
        return AnalysisResult(analysis=text, model=response.model or self.model)


async def ollama_status(client: OllamaClient, model: str) -> OllamaStatus:
    """Report whether Ollama is reachable and whether the model is pulled."""
    if not await client.health_check():
        return OllamaStatus(
            connected=False,
            host=client.host,
            model=model,
            error=f"Ollama not available at {client.host}. Start it with: ollama run {model}",
        )

    models = await client.list_models()
    available = await client.check_model(model, models)
    return OllamaStatus(
        connected=True,
        host=client.host,
        model=model,
        model_available=available,
        models=models,
    )
