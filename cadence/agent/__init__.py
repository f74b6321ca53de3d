"""Agent turn engine and its tool catalogue."""

from cadence.agent.continuation import Continuation
from cadence.agent.engine import AgentEngine
from cadence.agent.outcomes import Done, NeedsInput, Outcome, ScriptOutcome, ToolCallRecord, WorkflowOutcome
from cadence.agent.tools import TurnCapabilities

__all__ = [
    "AgentEngine",
    "Continuation",
    "Done",
    "NeedsInput",
    "Outcome",
    "ScriptOutcome",
    "ToolCallRecord",
    "TurnCapabilities",
    "WorkflowOutcome",
]
