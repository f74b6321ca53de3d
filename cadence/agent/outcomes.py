"""Terminal and pausing results of an agent turn."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class ToolCallRecord:
    """One tool invocation made during a turn, as stored on the message row."""

    id: str
    name: str
    completed: bool = True


@dataclass
class Outcome:
    """Base class for turn outcomes."""

    tool_calls: list[ToolCallRecord] = field(default_factory=list, kw_only=True)

    kind = "outcome"

    @property
    def reply_text(self) -> str:
        """Text to show the user for this outcome."""
        raise NotImplementedError

    def tool_call_dicts(self) -> list[dict[str, Any]]:
        return [asdict(record) for record in self.tool_calls]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.kind
        return data


@dataclass
class Done(Outcome):
    """The model stopped with a plain answer."""

    text: str

    kind = "message"

    @property
    def reply_text(self) -> str:
        return self.text


@dataclass
class ScriptOutcome(Outcome):
    """A one-off script ran successfully during the turn."""

    code: str
    output: str | None = None
    error: str | None = None
    description: str | None = None
    message: str | None = None

    kind = "script"

    @property
    def reply_text(self) -> str:
        if self.message:
            return self.message
        if self.output:
            return self.output
        return "Done."


@dataclass
class WorkflowOutcome(Outcome):
    """A workflow validated successfully during the turn."""

    name: str
    code: str
    description: str | None = None
    cron_schedule: str | None = None
    webhook_trigger: dict[str, str] | None = None
    message: str | None = None

    kind = "workflow"

    @property
    def reply_text(self) -> str:
        return self.message or f'Workflow "{self.name}" is ready.'


@dataclass
class NeedsInput(Outcome):
    """The turn is parked at ``ask_human`` waiting for the user.

    ``continuation`` is the serialized message list up to and including the
    model message that asked, plus any sibling tool results of that round.
    """

    question: str
    tool_call_id: str
    tool_name: str
    continuation: list[dict[str, Any]]
    permission_ids: list[str] = field(default_factory=list)

    kind = "needs_input"

    @property
    def reply_text(self) -> str:
        return self.question

    def to_dict(self) -> dict[str, Any]:
        # The continuation stays server-side
        data = super().to_dict()
        data.pop("continuation", None)
        return data
