"""Clients for the external sandboxed script runner.

The engine never interprets scripts itself. ``automation.scriptExecution``
hands the script to whatever runner the session was given, or to an
HttpScriptRunner built from ``SKILLGRAPH_SCRIPT_RUNNER_URL``.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from skillgraph.config import get_settings
from skillgraph.errors import ScriptRunnerError


class ScriptRunner(Protocol):
    """Protocol for a sandboxed script runner."""

    async def run(self, script: str, meta: dict[str, Any]) -> dict[str, Any]:
        """Run ``script`` and return the runner's result payload."""
        ...


class HttpScriptRunner:
    """Run scripts through a remote runner service.

    The service receives ``POST {base_url}/run`` with ``{"script", "meta"}``
    and answers with a JSON object (``success`` false marks a failed run).
    """

    def __init__(self, base_url: str, timeout: float = 10.0) -> None:
        """
        Args:
            base_url: Base URL of the runner service
            timeout: HTTP request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def run(self, script: str, meta: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/run"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json={"script": script, "meta": meta})
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise ScriptRunnerError(
                f"Script runner returned {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise ScriptRunnerError(
                f"Failed to connect to script runner at {self.base_url}: {e}"
            ) from e
        except ValueError as e:
            raise ScriptRunnerError("Script runner returned invalid JSON") from e

        if not isinstance(data, dict):
            return {"success": True, "result": data}
        return data


def runner_from_settings() -> ScriptRunner | None:
    """HttpScriptRunner for the configured URL, or None when none is set."""
    settings = get_settings()
    if not settings.script_runner_url:
        return None
    return HttpScriptRunner(settings.script_runner_url, timeout=settings.script_runner_timeout)
