"""Unit tests for check results, reports and environment configuration."""

import json
import pytest
from pydantic import ValidationError

from envprobe.models import (
    CheckResult,
    CheckStatus,
    Credentials,
    EnvironmentConfig,
    LoginLocators,
    Report,
    Verdict,
    derive_verdict,
    parse_elapsed,
)


def _report(*statuses):
    report = Report(strategy="static")
    for i, status in enumerate(statuses):
        report.add(CheckResult(name=f"Check {i}", status=status, elapsed_ms=100.0, notes=""))
    return report


class TestVerdict:

    def test_all_pass_is_go(self):
        assert _report(CheckStatus.PASS, CheckStatus.PASS).verdict == Verdict.GO

    def test_warnings_do_not_block(self):
        assert _report(CheckStatus.PASS, CheckStatus.WARNING).verdict == Verdict.GO

    def test_any_fail_is_no_go(self):
        assert _report(CheckStatus.PASS, CheckStatus.FAIL, CheckStatus.WARNING).verdict == Verdict.NO_GO

    def test_unknown_status_is_no_go(self):
        assert derive_verdict(["PASS", "ERROR"]) == Verdict.NO_GO
        assert derive_verdict(["pass", "warning"]) == Verdict.GO

    def test_verdict_follows_checks(self):
        report = _report(CheckStatus.PASS)
        assert report.verdict == Verdict.GO
        report.add(CheckResult(name="Late", status=CheckStatus.FAIL))
        assert report.verdict == Verdict.NO_GO


class TestCheckResult:

    def test_wire_format(self):
        result = CheckResult(name="UI URL", status=CheckStatus.PASS, elapsed_ms=1234.0, notes="200 OK")
        assert result.to_dict() == {
            "check": "UI URL",
            "status": "PASS",
            "latency": "1.2s",
            "notes": "200 OK",
        }

    def test_unmeasured_latency(self):
        result = CheckResult(name="Login", status=CheckStatus.FAIL, notes="Skipped - URL not accessible")
        assert result.latency == "-"
        assert result.to_dict()["latency"] == "-"

    def test_negative_elapsed_rejected(self):
        with pytest.raises(ValidationError):
            CheckResult(name="UI URL", status=CheckStatus.PASS, elapsed_ms=-1)

    def test_immutable(self):
        result = CheckResult(name="UI URL", status=CheckStatus.PASS)
        with pytest.raises(ValidationError):
            result.status = CheckStatus.FAIL

    def test_from_dict(self):
        result = CheckResult.from_dict({"check": "Console", "status": "WARNING", "latency": "-", "notes": "2 errors"})
        assert result.name == "Console"
        assert result.status == CheckStatus.WARNING
        assert result.elapsed_ms is None

    def test_from_dict_unknown_status_is_fail(self):
        result = CheckResult.from_dict({"check": "Backend API", "status": "ERROR", "latency": "1.5s", "notes": "boom"})
        assert result.status == CheckStatus.FAIL
        assert result.elapsed_ms == 1500.0

    def test_from_dict_lowercase_status(self):
        assert CheckResult.from_dict({"check": "Login", "status": "warning"}).status == CheckStatus.WARNING

    def test_parse_elapsed(self):
        assert parse_elapsed("1.5s") == 1500.0
        assert parse_elapsed("250ms") == 250.0
        assert parse_elapsed("-") is None
        assert parse_elapsed(None) is None


class TestReportSerialization:

    def test_to_dict_includes_verdict(self):
        data = _report(CheckStatus.PASS, CheckStatus.FAIL).to_dict()
        assert data["verdict"] == "NO-GO"
        assert [c["check"] for c in data["checks"]] == ["Check 0", "Check 1"]
        assert data["strategy"] == "static"

    def test_stored_verdict_is_ignored(self):
        data = _report(CheckStatus.FAIL).to_dict()
        data["verdict"] = "GO"
        restored = Report.from_dict(data)
        assert restored.verdict == Verdict.NO_GO

    def test_stored_error_status_loads_as_no_go(self):
        data = {
            "strategy": "browser",
            "checks": [
                {"check": "UI URL", "status": "PASS", "latency": "0.4s", "notes": "200 OK"},
                {"check": "Backend API", "status": "ERROR", "latency": "-", "notes": "crashed"},
            ],
        }
        restored = Report.from_dict(data)
        assert restored.checks[1].status == CheckStatus.FAIL
        assert restored.verdict == Verdict.NO_GO

    def test_json(self):
        report = _report(CheckStatus.PASS)
        report.finalize()
        data = json.loads(report.to_json())
        assert data["verdict"] == "GO"
        assert data["finished_at"] is not None

    def test_grouping(self):
        report = _report(CheckStatus.PASS, CheckStatus.WARNING, CheckStatus.FAIL, CheckStatus.FAIL)
        assert len(report.passed_checks) == 1
        assert len(report.warning_checks) == 1
        assert len(report.failed_checks) == 2
        assert report.warning_checks[0].name == "Check 1"


class TestEnvironmentConfig:

    def test_target_url_required(self):
        with pytest.raises(ValidationError):
            EnvironmentConfig(target_url="   ")

    def test_api_endpoint_defaults_to_target(self):
        config = EnvironmentConfig(target_url="https://qa.example.com")
        assert config.effective_api_endpoint == "https://qa.example.com"

        config = EnvironmentConfig(target_url="https://qa.example.com", api_endpoint="https://api.example.com")
        assert config.effective_api_endpoint == "https://api.example.com"

    def test_blank_api_endpoint_is_unset(self):
        config = EnvironmentConfig(target_url="https://qa.example.com", api_endpoint=" ")
        assert config.api_endpoint is None

    def test_password_masked(self):
        config = EnvironmentConfig(
            target_url="https://qa.example.com",
            credentials=Credentials(username="admin", password="s3cret"),
        )
        assert config.to_dict()["credentials"]["password"] == "********"
        assert "s3cret" not in repr(config)

    def test_frozen(self):
        config = EnvironmentConfig(target_url="https://qa.example.com")
        with pytest.raises(ValidationError):
            config.target_url = "https://other.example.com"


class TestLoginLocators:

    def test_provided_in_form_order(self):
        locators = LoginLocators(user="#u", submit="#go")
        assert locators.provided() == [("Username Field", "#u"), ("Login Button", "#go")]
        assert locators.any_set
        assert not locators.all_set

    def test_blank_is_unset(self):
        locators = LoginLocators(user="  ", password="", submit=None)
        assert not locators.any_set
        assert locators.provided() == []
