"""
Inference providers - optional local model used for quality scoring and
prompt enhancement.

Two implementations sit behind one contract:

- HeuristicInferenceProvider: never ready, never calls a model. Callers use
  their rule-based path.
- OllamaInferenceProvider: talks to a local Ollama server over HTTP.

Model calls are always fallible. `infer_with_fallback` bounds every call with a
timeout and turns any failure into an `error` result so callers can switch to
heuristics instead of blocking or raising.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

import httpx
from loguru import logger

from config import Settings, get_settings

DEFAULT_MAX_TOKENS = 256
DEFAULT_TEMPERATURE = 0.3


@dataclass(frozen=True)
class InferenceResult:
    text: str
    source: Literal["model", "error"]
    latency_ms: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.source == "model" and bool(self.text.strip())

    @classmethod
    def failed(cls, error: str, started: float | None = None) -> InferenceResult:
        latency = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        return cls(text="", source="error", latency_ms=latency, error=error)


class InferenceProvider(ABC):
    """A fallible text-generation capability."""

    name: str = "provider"

    @abstractmethod
    async def is_ready(self) -> bool:
        """Readiness check. False means callers should not attempt inference."""

    @abstractmethod
    async def infer(
        self,
        prompt: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> InferenceResult: ...

    async def close(self) -> None:
        """Release any held resources."""


class HeuristicInferenceProvider(InferenceProvider):
    name = "heuristic"

    async def is_ready(self) -> bool:
        return False

    async def infer(
        self,
        prompt: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> InferenceResult:
        return InferenceResult.failed("no model backend configured")


class OllamaInferenceProvider(InferenceProvider):
    """HTTP client for a local Ollama server."""

    name = "ollama"

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the provider.

        Args:
            base_url: Server URL, e.g. http://127.0.0.1:11434
            model: Model name as listed by the server
            timeout_seconds: Per-request HTTP timeout
            client: Optional preconfigured client (tests pass a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def is_ready(self) -> bool:
        """Check that the server answers and serves the configured model."""
        try:
            response = await self.client.get("/api/tags")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Inference server not ready at {self.base_url}: {e}")
            return False

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            logger.warning(f"Unexpected /api/tags body from {self.base_url}")
            return False

        names = {m.get("name", "") for m in models if isinstance(m, dict)}
        ready = self.model in names or any(n.split(":")[0] == self.model for n in names)
        if not ready:
            logger.warning(f"Model {self.model} not available on {self.base_url}")
        return ready

    async def infer(
        self,
        prompt: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> InferenceResult:
        started = time.perf_counter()
        try:
            response = await self.client.post(
                "/api/generate",
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False,
                    "options": {"num_predict": max_tokens, "temperature": temperature},
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Inference request failed: {e}")
            return InferenceResult.failed(str(e), started)
        except ValueError as e:
            logger.warning(f"Inference response was not valid JSON: {e}")
            return InferenceResult.failed("invalid response body", started)

        if not isinstance(data, dict):
            logger.warning("Inference response was not a JSON object")
            return InferenceResult.failed("invalid response body", started)
        text = data.get("response", "")

        return InferenceResult(
            text=str(text),
            source="model",
            latency_ms=(time.perf_counter() - started) * 1000,
        )


def create_inference_provider(settings: Settings | None = None) -> InferenceProvider:
    """Select the provider named by `inference_backend`."""
    settings = settings or get_settings()
    if settings.inference_backend == "ollama":
        return OllamaInferenceProvider(
            base_url=settings.inference_url,
            model=settings.inference_model,
            timeout_seconds=settings.inference_timeout_seconds,
        )
    return HeuristicInferenceProvider()


async def check_ready(provider: InferenceProvider, timeout_seconds: float = 10.0) -> bool:
    """
    Run the provider's readiness check bounded by `timeout_seconds`.

    Never raises: a check that hangs or fails reads as not ready.
    """
    try:
        return bool(await asyncio.wait_for(provider.is_ready(), timeout=timeout_seconds))
    except asyncio.TimeoutError:
        logger.warning(f"Readiness check timed out after {timeout_seconds}s ({provider.name})")
        return False
    except Exception as e:  # Provider implementations are external; any failure means fallback
        logger.warning(f"Readiness check failed ({provider.name}): {e}")
        return False


async def infer_with_fallback(
    provider: InferenceProvider,
    prompt: str,
    timeout_seconds: float = 10.0,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> InferenceResult:
    """
    Run one inference bounded by `timeout_seconds`.

    Never raises: timeouts and provider errors come back as `error` results.
    """
    started = time.perf_counter()
    try:
        return await asyncio.wait_for(
            provider.infer(prompt, max_tokens=max_tokens, temperature=temperature),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning(f"Inference timed out after {timeout_seconds}s ({provider.name})")
        return InferenceResult.failed("timeout", started)
    except Exception as e:  # Provider implementations are external; any failure means fallback
        logger.warning(f"Inference failed ({provider.name}): {e}")
        return InferenceResult.failed(str(e), started)
