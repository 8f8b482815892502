"""
Tests for the Ollama client wrapper and report analysis.
"""

import httpx
import pytest
from unittest.mock import AsyncMock, Mock
from ollama import ResponseError

from envprobe.analyzer import NO_ANALYSIS, ReportAnalyzer, ollama_status
from envprobe.llm_client import (
    GenerateResponse,
    OllamaClient,
    OllamaConnectionError,
    OllamaGenerationError,
    OllamaModelNotFoundError,
)
from envprobe.models import CheckResult, CheckStatus, Report


@pytest.fixture
def client():
    """OllamaClient with a mocked underlying ollama AsyncClient."""
    c = OllamaClient(retry_delay=0, max_retries=3)
    c._client = Mock()
    c._client.generate = AsyncMock(return_value={"response": "All good", "model": "llama3.2", "eval_count": 12})
    c._client.list = AsyncMock(return_value={"models": [{"model": "llama3.2:latest"}, {"model": "mistral:7b"}]})
    return c


@pytest.fixture
def report():
    r = Report(strategy="browser")
    r.add(CheckResult(name="UI URL", status=CheckStatus.PASS, elapsed_ms=1200, notes="200 OK"))
    r.add(CheckResult(name="Login", status=CheckStatus.FAIL, notes="Locator not found: Username Field (#user)"))
    r.add(CheckResult(name="Backend API", status=CheckStatus.WARNING, elapsed_ms=3400, notes="High Latency"))
    r.finalize()
    return r


class TestGenerate:

    @pytest.mark.asyncio
    async def test_success(self, client):
        response = await client.generate("llama3.2", "Hello", temperature=0.7, max_tokens=500)
        assert response.text == "All good"
        assert response.eval_count == 12

        kwargs = client._client.generate.call_args.kwargs
        assert kwargs["options"] == {"temperature": 0.7, "num_predict": 500}
        assert kwargs["stream"] is False

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self, client):
        client._client.generate = AsyncMock(side_effect=[
            httpx.ConnectError("refused"),
            {"response": "Recovered", "model": "llama3.2"},
        ])
        response = await client.generate("llama3.2", "Hello")
        assert response.text == "Recovered"
        assert client._client.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_connection_failure(self, client):
        client._client.generate = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(OllamaConnectionError):
            await client.generate("llama3.2", "Hello")
        assert client._client.generate.await_count == 3

    @pytest.mark.asyncio
    async def test_model_not_found(self, client):
        client._client.generate = AsyncMock(side_effect=ResponseError("model 'nope' not found", 404))
        with pytest.raises(OllamaModelNotFoundError):
            await client.generate("nope", "Hello")

    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self, client):
        client._client.generate = AsyncMock(side_effect=ResponseError("server error", 500))
        with pytest.raises(OllamaGenerationError, match="server error"):
            await client.generate("llama3.2", "Hello")
        assert client._client.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self, client):
        client._client.generate = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))
        with pytest.raises(OllamaGenerationError, match="timed out after 3 attempts"):
            await client.generate("llama3.2", "Hello")
        assert client._client.generate.await_count == 3

    @pytest.mark.asyncio
    async def test_uninitialized(self):
        with pytest.raises(OllamaConnectionError):
            await OllamaClient().generate("llama3.2", "Hello")


class TestModels:

    @pytest.mark.asyncio
    async def test_list_models(self, client):
        assert await client.list_models() == ["llama3.2:latest", "mistral:7b"]

    @pytest.mark.asyncio
    async def test_check_model_matches_untagged(self, client):
        assert await client.check_model("llama3.2") is True
        assert await client.check_model("mistral:7b") is True
        assert await client.check_model("phi3") is False

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        assert await client.health_check() is True

        client._client.list = AsyncMock(side_effect=httpx.ConnectError("refused"))
        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_without_client(self):
        assert await OllamaClient().health_check() is False


class TestReportAnalyzer:

    def test_prompt(self, client, report):
        analyzer = ReportAnalyzer(client)
        prompt = analyzer.build_prompt(report, "QA", "https://qa.example.com")

        assert "Environment: QA" in prompt
        assert "URL: https://qa.example.com" in prompt
        assert "- UI URL: PASS (1.2s) - 200 OK" in prompt
        assert "- Failed: 1" in prompt
        assert "Failed Checks Details:" in prompt
        assert "- Login: Locator not found: Username Field (#user)" in prompt
        assert "under 300 words" in prompt

    def test_prompt_unknown_environment(self, client):
        healthy = Report(checks=[CheckResult(name="UI URL", status=CheckStatus.PASS, elapsed_ms=100, notes="200 OK")])
        prompt = ReportAnalyzer(client).build_prompt(healthy, None, None)
        assert "Environment: Unknown" in prompt
        assert "Failed Checks Details" not in prompt

    @pytest.mark.asyncio
    async def test_analyze(self, report):
        llm = Mock()
        llm.generate = AsyncMock(return_value=GenerateResponse(text="## Assessment\nNO-GO", model="llama3.2"))
        analyzer = ReportAnalyzer(llm, model="llama3.2", temperature=0.2, max_tokens=300)

        result = await analyzer.analyze(report, "QA", "https://qa.example.com")

        assert result.analysis.startswith("## Assessment")
        assert result.model == "llama3.2"
        kwargs = llm.generate.call_args.kwargs
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 300

    @pytest.mark.asyncio
    async def test_empty_analysis(self, report):
        llm = Mock()
        llm.generate = AsyncMock(return_value=GenerateResponse(text="   ", model="llama3.2"))
        result = await ReportAnalyzer(llm).analyze(report)
        assert result.analysis == NO_ANALYSIS


class TestOllamaStatus:

    @pytest.mark.asyncio
    async def test_connected(self, client):
        status = await ollama_status(client, "llama3.2")
        assert status.connected
        assert status.model_available
        assert "mistral:7b" in status.models

    @pytest.mark.asyncio
    async def test_model_missing(self, client):
        status = await ollama_status(client, "phi3")
        assert status.connected
        assert not status.model_available

    @pytest.mark.asyncio
    async def test_not_running(self, client):
        client._client.list = AsyncMock(side_effect=httpx.ConnectError("refused"))
        status = await ollama_status(client, "llama3.2")
        assert not status.connected
        assert status.error
        assert status.host == "http://localhost:11434"
