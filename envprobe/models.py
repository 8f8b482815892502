"""Pydantic models for probe configuration, check results and reports."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Union
from pydantic import BaseModel, Field, field_validator, ConfigDict
import json


UNMEASURED = "-"


class CheckStatus(str, Enum):
    """Outcome of a single check."""
    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"


class Verdict(str, Enum):
    """Deployment gate derived from a report."""
    GO = "GO"
    NO_GO = "NO-GO"


def parse_status(value: Any) -> CheckStatus:
    """Stored status to CheckStatus. Unrecognized values (e.g. "ERROR") count as FAIL."""
    if isinstance(value, CheckStatus):
        return value
    try:
        return CheckStatus(str(value).upper())
    except ValueError:
        return CheckStatus.FAIL


class StageState(str, Enum):
    """Lifecycle of one stage within a run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"


class LocatorKind(str, Enum):
    CSS = "css"
    XPATH = "xpath"
    INVALID = "invalid"


class Locator(BaseModel):
    """A user-supplied element selector and its classified kind."""
    raw: str
    kind: LocatorKind

    model_config = ConfigDict(frozen=True)

    @property
    def is_valid(self) -> bool:
        return self.kind != LocatorKind.INVALID

    @property
    def expression(self) -> str:
        """The selector body with any explicit ``css=``/``xpath=`` engine prefix removed."""
        for prefix in ("xpath=", "css="):
            if self.raw.lower().startswith(prefix):
                return self.raw[len(prefix):].strip()
        return self.raw


def format_elapsed(elapsed_ms: Optional[float]) -> str:
    """Render a duration the way reports display it ("1.2s" or "-")."""
    if elapsed_ms is None:
        return UNMEASURED
    return f"{elapsed_ms / 1000:.1f}s"


def parse_elapsed(value: Union[str, float, int, None]) -> Optional[float]:
    """Inverse of format_elapsed; "-" and empty values are unmeasured."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    value = value.strip()
    if not value or value == UNMEASURED:
        return None
    if value.endswith("ms"):
        return float(value[:-2])
    if value.endswith("s"):
        return float(value[:-1]) * 1000
    return float(value)


class CheckResult(BaseModel):
    """Result of one stage. Immutable once produced."""
    name: str
    status: CheckStatus
    elapsed_ms: Optional[float] = None
    notes: str = ""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator('elapsed_ms')
    @classmethod
    def validate_elapsed(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("elapsed_ms must be non-negative")
        return v

    @property
    def latency(self) -> str:
        return format_elapsed(self.elapsed_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format consumed by report renderers."""
        return {
            "check": self.name,
            "status": self.status.value,
            "latency": self.latency,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CheckResult':
        """Create from the wire format."""
        return cls(
            name=data.get("check") or data["name"],
            status=parse_status(data["status"]),
            elapsed_ms=parse_elapsed(data.get("latency", data.get("elapsed_ms"))),
            notes=data.get("notes", ""),
        )


def derive_verdict(statuses: Iterable[Union[CheckStatus, str]]) -> Verdict:
    """NO-GO iff any status is FAIL or is not a recognized passing status.

    Stored history may carry statuses such as "ERROR"; those count as failures.
    """
    passing = {CheckStatus.PASS.value, CheckStatus.WARNING.value}
    for status in statuses:
        value = status.value if isinstance(status, CheckStatus) else str(status).upper()
        if value not in passing:
            return Verdict.NO_GO
    return Verdict.GO


class Report(BaseModel):
    """Ordered collection of check results for one probe run."""
    checks: List[CheckResult] = Field(default_factory=list)
    strategy: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def add(self, result: CheckResult):
        self.checks.append(result)

    def finalize(self):
        self.finished_at = datetime.now()

    @property
    def verdict(self) -> Verdict:
        return derive_verdict(c.status for c in self.checks)

    @property
    def failed_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if c.status == CheckStatus.FAIL]

    @property
    def warning_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if c.status == CheckStatus.WARNING]

    @property
    def passed_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if c.status == CheckStatus.PASS]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary. The verdict is derived at serialization time."""
        return {
            "checks": [c.to_dict() for c in self.checks],
            "strategy": self.strategy,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "verdict": self.verdict.value,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Report':
        """Create from dictionary. Any stored verdict is ignored."""
        started = data.get("started_at")
        finished = data.get("finished_at")
        return cls(
            checks=[CheckResult.from_dict(c) for c in data.get("checks", [])],
            strategy=data.get("strategy"),
            started_at=datetime.fromisoformat(started) if started else None,
            finished_at=datetime.fromisoformat(finished) if finished else None,
        )


class Credentials(BaseModel):
    username: str
    password: str = Field(repr=False)

    model_config = ConfigDict(frozen=True)


class LoginLocators(BaseModel):
    """Selectors for the login form. Each one is optional."""
    user: Optional[str] = None
    password: Optional[str] = None
    submit: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator('user', 'password', 'submit')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def any_set(self) -> bool:
        return bool(self.user or self.password or self.submit)

    @property
    def all_set(self) -> bool:
        return bool(self.user and self.password and self.submit)

    def provided(self) -> List[tuple]:
        """(field label, selector) pairs for the locators that are set, in form order."""
        pairs = [
            ("Username Field", self.user),
            ("Password Field", self.password),
            ("Login Button", self.submit),
        ]
        return [(label, selector) for label, selector in pairs if selector]


class EnvironmentConfig(BaseModel):
    """Everything one probe run needs to know about the target environment.

    Built once at the boundary and passed read-only into the probe.
    """
    target_url: str
    api_endpoint: Optional[str] = None
    credentials: Optional[Credentials] = None
    dashboard_url: Optional[str] = None
    locators: Optional[LoginLocators] = None
    expected_error_text: Optional[str] = None
    name: Optional[str] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator('target_url')
    @classmethod
    def validate_target_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("target_url must not be empty")
        return v

    @field_validator('api_endpoint', 'dashboard_url', 'expected_error_text')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def effective_api_endpoint(self) -> str:
        return self.api_endpoint or self.target_url

    @property
    def has_any_locator(self) -> bool:
        return self.locators is not None and self.locators.any_set

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with the password masked."""
        data = self.model_dump()
        if data.get("credentials"):
            data["credentials"]["password"] = "********"
        return data


class RunRecord(BaseModel):
    """A stored probe run."""
    run_id: str
    created_at: datetime
    environment: Optional[str] = None
    target_url: str
    strategy: Optional[str] = None
    verdict: str
    report_json: str

    model_config = ConfigDict(from_attributes=True)

    def get_report(self) -> Report:
        """Parse report_json into a Report object."""
        return Report.from_dict(json.loads(self.report_json))


class ArchiveRecord(BaseModel):
    """An archived environment configuration."""
    archive_id: str
    name: str
    archived_at: datetime
    settings_json: str

    model_config = ConfigDict(from_attributes=True)

    def get_settings(self) -> Dict[str, Any]:
        try:
            return json.loads(self.settings_json)
        except json.JSONDecodeError:
            return {}
