"""
EnvProbe - Environment Health Probe

Probes a deployed web environment (UI entrypoint, login flow, backend API,
console health) and produces a GO/NO-GO report for deployment gating.
"""

__version__ = "0.1.0"

# Package-level imports
from envprobe.models import (
    CheckStatus,
    CheckResult,
    Report,
    Verdict,
    EnvironmentConfig,
    Credentials,
    LoginLocators,
    Locator,
    LocatorKind,
    RunRecord,
    ArchiveRecord,
    derive_verdict,
    format_elapsed,
)
from envprobe.locators import classify
from envprobe.status import classify_status
from envprobe.strategy import StrategyPreference, select_strategy
from envprobe.probe import ProbeOrchestrator
from envprobe.history import HistoryStore
from envprobe.config import (
    AppConfig,
    ConfigLoader,
    EnvironmentSettings,
    get_default_config,
    resolve_environment,
)
from envprobe.llm_client import (
    OllamaClient,
    OllamaConnectionError,
    OllamaModelNotFoundError,
    OllamaGenerationError,
)
from envprobe.analyzer import ReportAnalyzer, AnalysisResult, OllamaStatus, ollama_status
from envprobe.exceptions import (
    ProbeError,
    NetworkError,
    ResolutionError,
    ResolutionErrorKind,
    ProbeAssertionError,
    OperationalError,
    ConfigError,
    DatabaseError,
)

__all__ = [
    # Models
    "CheckStatus",
    "CheckResult",
    "Report",
    "Verdict",
    "EnvironmentConfig",
    "Credentials",
    "LoginLocators",
    "Locator",
    "LocatorKind",
    "RunRecord",
    "ArchiveRecord",
    "derive_verdict",
    "format_elapsed",
    # Probe engine
    "classify",
    "classify_status",
    "StrategyPreference",
    "select_strategy",
    "ProbeOrchestrator",
    # History
    "HistoryStore",
    # Configuration
    "AppConfig",
    "ConfigLoader",
    "EnvironmentSettings",
    "get_default_config",
    "resolve_environment",
    # LLM analysis
    "OllamaClient",
    "OllamaConnectionError",
    "OllamaModelNotFoundError",
    "OllamaGenerationError",
    "ReportAnalyzer",
    "AnalysisResult",
    "OllamaStatus",
    "ollama_status",
    # Exceptions
    "ProbeError",
    "NetworkError",
    "ResolutionError",
    "ResolutionErrorKind",
    "ProbeAssertionError",
    "OperationalError",
    "ConfigError",
    "DatabaseError",
]
