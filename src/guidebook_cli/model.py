"""Ollama model client - optional consumer of rendered documents.

Checks the local server, pulls the model on first use and sends a
rendered guide as a prompt.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "qwen2.5-coder:7b"
OLLAMA_BASE_URL = os.environ.get("OLLAMA_HOST", "http://localhost:11434")
PULL_TIMEOUT = 600  # model download
GENERATE_TIMEOUT = 300


class ModelError(Exception):
    """Error communicating with the model."""


class OllamaClient:
    """Client for the Ollama REST API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = OLLAMA_BASE_URL,
    ):
        self.model = model
        if "://" not in base_url:
            base_url = f"http://{base_url}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=GENERATE_TIMEOUT)

    def is_ollama_running(self) -> bool:
        try:
            resp = self._client.get(f"{self.base_url}/api/tags", timeout=5)
            return resp.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    def start_ollama(self) -> bool:
        """Try to launch ``ollama serve`` and wait for it to answer."""
        try:
            subprocess.Popen(
                ["ollama", "serve"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            return False
        for _ in range(15):
            time.sleep(1)
            if self.is_ollama_running():
                return True
        return False

    def installed_models(self) -> list[str]:
        try:
            resp = self._client.get(f"{self.base_url}/api/tags", timeout=10)
        except httpx.HTTPError as e:
            raise ModelError(f"Cannot list models at {self.base_url}: {e}") from e
        if resp.status_code != 200:
            raise ModelError(f"Ollama returned {resp.status_code}: {resp.text[:200]}")
        return [m.get("name", "") for m in resp.json().get("models", [])]

    def is_model_available(self) -> bool:
        """Check if the configured model is downloaded."""
        try:
            models = self.installed_models()
        except ModelError:
            return False
        # "qwen2.5-coder" also matches "qwen2.5-coder:latest"
        return any(
            self.model == m
            or self.model == m.split(":")[0]
            or f"{self.model}:latest" == m
            for m in models
        )

    def pull_model(self, progress_callback=None) -> bool:
        """Download the model. Returns True when it is available afterwards."""
        logger.info("Pulling model %s", self.model)
        try:
            with self._client.stream(
                "POST",
                f"{self.base_url}/api/pull",
                json={"name": self.model},
                timeout=PULL_TIMEOUT,
            ) as resp:
                for line in resp.iter_lines():
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        logger.debug("Ignoring non-JSON pull line: %s", line[:80])
                        continue
                    if progress_callback:
                        progress_callback(
                            data.get("status", ""),
                            data.get("completed", 0),
                            data.get("total", 0),
                        )
        except httpx.HTTPError as e:
            raise ModelError(f"Failed to pull model {self.model}: {e}") from e
        return self.is_model_available()

    def generate(
        self,
        prompt: str,
        system: str = "",
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> str:
        """Generate text from prompt. Returns the raw response text."""
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if system:
            payload["system"] = system

        logger.debug("Sending %d-char prompt to %s", len(prompt), self.model)
        try:
            resp = self._client.post(
                f"{self.base_url}/api/generate",
                json=payload,
                timeout=GENERATE_TIMEOUT,
            )
        except httpx.TimeoutException:
            raise ModelError(f"Model generation timed out after {GENERATE_TIMEOUT}s")
        except httpx.ConnectError:
            raise ModelError(
                "Cannot connect to Ollama. Is it running? Try: ollama serve"
            )
        if resp.status_code != 200:
            raise ModelError(f"Ollama returned {resp.status_code}: {resp.text[:200]}")
        return resp.json().get("response", "")

    def ensure_ready(self, progress_callback=None) -> None:
        """Ensure Ollama is running and the model is available."""
        if not self.is_ollama_running():
            if progress_callback:
                progress_callback("Starting Ollama server...", 0, 0)
            if not self.start_ollama():
                raise ModelError(
                    "Ollama is not installed or cannot start.\n"
                    "Install it from https://ollama.com, then run: ollama serve"
                )

        if not self.is_model_available():
            if progress_callback:
                progress_callback(f"Downloading {self.model} (one-time)...", 0, 0)
            if not self.pull_model(progress_callback):
                raise ModelError(f"Model {self.model} is still unavailable after pull")
