"""Client side of the sandboxed code runner service."""

from cadence.sandbox.runner import (
    CodeRunner,
    HttpCodeRunner,
    PermissionSignal,
    RunResult,
    TypecheckResult,
    UnavailableCodeRunner,
    create_runner,
    extract_entry_points,
    parse_permission_signal,
    snippet_output,
)

__all__ = [
    "CodeRunner",
    "HttpCodeRunner",
    "PermissionSignal",
    "RunResult",
    "TypecheckResult",
    "UnavailableCodeRunner",
    "create_runner",
    "extract_entry_points",
    "parse_permission_signal",
    "snippet_output",
]
