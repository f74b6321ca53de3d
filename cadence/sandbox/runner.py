"""Code runner contract and its HTTP client.

The runner is an external service that typechecks and executes
user-authored automation code. Protected operations inside that code are
gated by the runner itself: when no grant exists it fails the run with a
``[PERMISSION_REQUIRED]`` marker followed by a JSON object naming the
endpoint and arguments.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from cadence.core.config import RunnerConfig

logger = logging.getLogger(__name__)

PERMISSION_MARKER = "[PERMISSION_REQUIRED]"
OUTPUT_SNIPPET_LINES = 30

_ENTRY_POINT_PATTERN = re.compile(r"export\s+async\s+function\s+(\w+)\s*\(")


@dataclass
class TypecheckResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class RunResult:
    """Outcome of executing code in the sandbox."""

    success: bool
    output: str | None = None
    error: str | None = None


@dataclass
class PermissionSignal:
    """A protected call the runner refused for lack of a grant."""

    endpoint: str
    args: dict[str, Any]


def extract_entry_points(code: str) -> list[str]:
    """Return the names of all exported async functions in code."""
    return _ENTRY_POINT_PATTERN.findall(code)


def snippet_output(full: str) -> str:
    """Reduce runner output to its first non-empty, trimmed lines."""
    lines = [line.strip() for line in full.strip().splitlines()]
    return "\n".join([line for line in lines if line][:OUTPUT_SNIPPET_LINES])


def parse_permission_signal(error: str | None) -> PermissionSignal | None:
    """Extract the permission request carried by a runner error, if any.

    Args:
        error: Error text returned by the runner.

    Returns:
        PermissionSignal, or None when the error is not a permission refusal
        or its payload cannot be decoded.
    """
    if not error or PERMISSION_MARKER not in error:
        return None

    payload = error.split(PERMISSION_MARKER, 1)[1].strip()
    try:
        data, _ = json.JSONDecoder().raw_decode(payload)
    except json.JSONDecodeError:
        logger.warning(f"Malformed permission signal from runner: {payload[:200]}")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("endpoint"), str):
        return None
    args = data.get("args") or {}
    if not isinstance(args, dict):
        return None
    return PermissionSignal(endpoint=data["endpoint"], args=args)


class CodeRunner(ABC):
    """Abstract sandboxed code runner."""

    @abstractmethod
    async def typecheck(self, code: str) -> TypecheckResult:
        """Statically check code without running it."""
        ...

    @abstractmethod
    async def run(self, code: str, event_payload: dict[str, Any] | None = None) -> RunResult:
        """Execute code, exposing event_payload to it when given."""
        ...

    def extract_entry_points(self, code: str) -> list[str]:
        return extract_entry_points(code)


class HttpCodeRunner(CodeRunner):
    """Talks to the sandbox service over HTTP.

    Endpoints:
        POST {base_url}/typecheck  {"code"} -> {"valid", "errors"}
        POST {base_url}/run        {"code", "event"} -> {"success", "output", "error"}
    """

    def __init__(self, base_url: str, api_key: str | None = None, timeout: float = 120.0):
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    async def typecheck(self, code: str) -> TypecheckResult:
        response = await self._client.post("/typecheck", json={"code": code})
        response.raise_for_status()
        data = response.json()
        errors = data.get("errors") or []
        if isinstance(errors, str):
            errors = [errors]
        return TypecheckResult(valid=bool(data.get("valid")), errors=list(errors))

    async def run(self, code: str, event_payload: dict[str, Any] | None = None) -> RunResult:
        try:
            response = await self._client.post("/run", json={"code": code, "event": event_payload})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Code runner request failed: {e}")
            return RunResult(success=False, error=f"Code runner unavailable: {e}")

        data = response.json()
        return RunResult(
            success=bool(data.get("success")),
            output=data.get("output"),
            error=data.get("error"),
        )

    async def close(self) -> None:
        await self._client.aclose()


class UnavailableCodeRunner(CodeRunner):
    """Stand-in used when no runner service is configured.

    Every call fails with an explanatory error so turns and workflow runs
    degrade instead of crashing.
    """

    REASON = "Code execution is not configured on this server"

    async def typecheck(self, code: str) -> TypecheckResult:
        return TypecheckResult(valid=False, errors=[self.REASON])

    async def run(self, code: str, event_payload: dict[str, Any] | None = None) -> RunResult:
        return RunResult(success=False, error=self.REASON)


def create_runner(config: RunnerConfig) -> CodeRunner:
    """Build the runner for the configured service, or the disabled stand-in."""
    if not config.base_url:
        logger.warning("No runner base_url configured; code execution disabled")
        return UnavailableCodeRunner()
    logger.info(f"Using code runner at {config.base_url}")
    return HttpCodeRunner(config.base_url, api_key=config.api_key, timeout=config.timeout_seconds)
