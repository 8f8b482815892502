"""
Async Ollama client for the optional narrative analysis of probe reports.

Wraps the ollama package's AsyncClient with a health check, model lookup and a
single generate call that retries transient connection failures.
"""

import asyncio
import logging
from typing import Optional, List, Any

import httpx
from ollama import AsyncClient, ResponseError
from pydantic import BaseModel


logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException, ConnectionError)


class GenerateResponse(BaseModel):
    text: str
    model: str
    total_duration: Optional[int] = None
    eval_count: Optional[int] = None


class OllamaConnectionError(Exception):
    """Ollama service is not reachable."""


class OllamaModelNotFoundError(Exception):
    """The requested model has not been pulled."""


class OllamaGenerationError(Exception):
    """Ollama answered but no text was generated."""


def _model_name(entry: Any) -> Optional[str]:
    # Newer ollama releases report "model", older ones "name"
    return entry.get('model') or entry.get('name')


def model_matches(available: str, requested: str) -> bool:
    """An untagged request ("llama3.2") matches any tag of that model."""
    return available == requested or available.split(':')[0] == requested


class OllamaClient:
    """
    Async context manager around the Ollama API.

    Usage:
        async with OllamaClient(host) as client:
            response = await client.generate("llama3.2", prompt)
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ):
        """
        Args:
            host: Ollama service URL
            timeout: Request timeout in seconds
            max_retries: Attempts for a generate call that fails to connect
            retry_delay: Base delay between attempts, doubled each time
        """
        self.host = host
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client: Optional[AsyncClient] = None

    async def __aenter__(self):
        self._client = AsyncClient(host=self.host, timeout=self.timeout)
        logger.info(f"Initializing Ollama client at {self.host}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._client:
            # AsyncClient wraps an httpx.AsyncClient
            inner = getattr(self._client, '_client', None)
            if inner is not None:
                await inner.aclose()
        self._client = None

    async def health_check(self) -> bool:
        """True if the Ollama service answers."""
        if not self._client:
            return False
        try:
            await self._client.list()
            return True
        except RETRYABLE_ERRORS as e:
            logger.debug(f"Ollama health check failed: {e}")
            return False
        except Exception as e:
            logger.warning(f"Unexpected error during health check: {e}")
            return False

    async def list_models(self) -> List[str]:
        """Names of the pulled models; empty if they cannot be listed."""
        if not self._client:
            return []
        try:
            models = await self._client.list()
        except Exception as e:
            logger.error(f"Error listing models: {e}")
            return []
        return [_model_name(m) for m in models.get('models', []) if _model_name(m)]

    async def check_model(self, model_name: str, available_models: Optional[List[str]] = None) -> bool:
        """Whether ``model_name`` is pulled. Lists the models unless given."""
        if available_models is None:
            available_models = await self.list_models()

        if any(model_matches(available, model_name) for available in available_models):
            return True

        logger.warning(f"Model '{model_name}' not found. Available models: {available_models}")
        return False

    async def generate(
        self,
        model: str,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> GenerateResponse:
        """
        Generate a completion, retrying connection failures with backoff.

        Raises:
            OllamaConnectionError: Service unreachable after all attempts
            OllamaModelNotFoundError: Model not pulled
            OllamaGenerationError: Request timed out or Ollama reported an error
        """
        if not self._client:
            raise OllamaConnectionError("Client not initialized")

        options = {"temperature": temperature}
        if max_tokens:
            options["num_predict"] = max_tokens

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._client.generate(
                    model=model, prompt=prompt, options=options, stream=False
                )
                break
            except RETRYABLE_ERRORS as e:
                if attempt >= self.max_retries:
                    if isinstance(e, httpx.TimeoutException):
                        raise OllamaGenerationError(f"Request timed out after {attempt} attempts") from e
                    raise OllamaConnectionError(
                        f"Could not reach Ollama at {self.host} after {attempt} attempts"
                    ) from e
                delay = self.retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Ollama request failed on attempt {attempt}/{self.max_retries}, "
                    f"retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)
            except ResponseError as e:
                if e.status_code == 404 or "not found" in str(e).lower():
                    raise OllamaModelNotFoundError(f"Model '{model}' not found. Run: ollama pull {model}") from e
                logger.error(f"Generation failed for model {model}: {e}")
                raise OllamaGenerationError(f"Generation failed: {e}") from e
            except httpx.HTTPError as e:
                logger.error(f"Generation failed for model {model}: {e}")
                raise OllamaGenerationError(f"Generation failed: {e}") from e

        logger.debug(f"Generated {response.get('eval_count')} tokens with {model}")
        return GenerateResponse(
            text=response.get('response', ''),
            model=response.get('model') or model,
            total_duration=response.get('total_duration'),
            eval_count=response.get('eval_count'),
        )
