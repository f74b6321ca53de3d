"""Tool catalogue for the agent turn engine."""

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

from cadence.agent.examples import ExampleCatalogue
from cadence.core.errors import InvalidScheduleError
from cadence.db.database import DatabaseManager
from cadence.db.repositories import ChannelMessageRepository
from cadence.permissions.broker import PermissionBroker
from cadence.sandbox.runner import CodeRunner, parse_permission_signal, snippet_output
from cadence.workflows.scheduler import parse_cron
from cadence.workflows.service import WorkflowService, workflow_to_dict

logger = logging.getLogger(__name__)

WRITE_AND_EXECUTE_CODE = "write_and_execute_code"
ASK_HUMAN = "ask_human"

# Declared to the model without a handler: calling it parks the turn
ASK_HUMAN_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": ASK_HUMAN,
        "description": (
            "Ask the user one clarifying question. Pauses the conversation until the "
            "user replies. Include any options you fetched."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "question": {"type": "string", "description": "The question to ask"},
            },
            "required": ["question"],
        },
    },
}


@dataclass
class TurnCapabilities:
    """What the caller of a turn can offer the agent.

    Attributes:
        channel: Messaging channel name for channel callers.
        chat_id: Chat id within that channel.
        session_key: ``<channel>:<chat_id>``; stored as the notify target of
            workflows created in this conversation and on permission requests.
        system_extra: Additional system prompt section.
    """

    channel: str | None = None
    chat_id: str | None = None
    session_key: str | None = None
    system_extra: str | None = None

    @property
    def has_chat_history(self) -> bool:
        return bool(self.channel and self.chat_id)


@dataclass
class TurnState:
    """Mutable per-turn bookkeeping shared between the engine and the tools."""

    permission_ids: list[str] = field(default_factory=list)


class WebhookTriggerInput(BaseModel):
    plugin: str = Field(description="Plugin that emits the event, e.g. 'tracker'")
    action: str = Field(description="Event action, e.g. 'issueCreated'")


class WriteAndExecuteCodeInput(BaseModel):
    """Input schema for writing and running code."""

    type: Literal["script", "workflow"] = Field(
        description="'script' runs once now; 'workflow' is validated for storage"
    )
    code: str = Field(description="Complete program source")
    description: str | None = Field(default=None, description="What the code does")
    cron_schedule: str | None = Field(
        default=None, description="Crontab expression for scheduled workflows, e.g. '0 9 * * *'"
    )
    webhook_trigger: WebhookTriggerInput | None = Field(
        default=None, description="Event that triggers the workflow"
    )


class ManageWorkflowsInput(BaseModel):
    """Input schema for workflow management."""

    action: Literal["list", "create", "update", "archive"] = Field(description="Operation to perform")
    trigger_type: Literal["cron", "webhook", "manual", "all"] | None = Field(
        default=None, description="Filter for list"
    )
    workflow_id: str | None = Field(default=None, description="Workflow id or name (update, archive)")
    name: str | None = Field(default=None, description="Workflow name, its exported function (create)")
    code: str | None = Field(default=None, description="Workflow source (create, update)")
    description: str | None = Field(default=None, description="Workflow description")
    cron_schedule: str | None = Field(default=None, description="Crontab expression")
    webhook_trigger: WebhookTriggerInput | None = Field(default=None, description="Triggering event")
    status: Literal["active", "paused", "archived"] | None = Field(default=None, description="New status")


class RequestPermissionInput(BaseModel):
    """Input schema for requesting approval of a protected call."""

    endpoint: str = Field(description="Dotted endpoint, e.g. 'slack.postMessage'")
    args: dict[str, Any] = Field(description="Exact arguments of the call to approve")
    description: str = Field(description="Plain-language explanation shown to the approver")


class SearchCodeExamplesInput(BaseModel):
    query: str = Field(description="Plugin name (e.g. 'slack') or keywords (e.g. 'post message')")
    limit: int = Field(default=5, ge=1, le=20, description="Maximum number of examples")


class ConversationHistoryInput(BaseModel):
    limit: int = Field(ge=1, le=20, description="How many recent messages to retrieve")


def _as_dict(value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump()
    return dict(value)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class AgentToolkit:
    """Builds the LangChain tools available during one turn.

    Tools return plain dicts. Failures are reported in the result
    (``success: false`` with ``error``) so the model can correct itself.
    """

    def __init__(
        self,
        runner: CodeRunner,
        workflows: WorkflowService,
        broker: PermissionBroker,
        db: DatabaseManager,
        capabilities: TurnCapabilities,
        state: TurnState,
        examples: ExampleCatalogue,
        public_base_url: str = "",
    ):
        self._runner = runner
        self._workflows = workflows
        self._broker = broker
        self._db = db
        self._capabilities = capabilities
        self._state = state
        self._examples = examples
        self._public_base_url = public_base_url.rstrip("/")

    def get_tools(self) -> list[StructuredTool]:
        """Return the tools for this turn; chat history only for channel callers."""
        tools = [
            self._create_search_code_examples_tool(),
            self._create_write_and_execute_code_tool(),
            self._create_manage_workflows_tool(),
            self._create_request_permission_tool(),
        ]
        if self._capabilities.has_chat_history:
            tools.append(self._create_conversation_history_tool())
        return tools

    def _create_search_code_examples_tool(self) -> StructuredTool:
        async def search_code_examples(query: str, limit: int = 5) -> dict[str, Any]:
            matches = self._examples.search(query, limit)
            return {"examples": [example.model_dump() for example in matches]}

        return StructuredTool.from_function(
            coroutine=search_code_examples,
            name="search_code_examples",
            description=(
                "Search worked code examples by plugin name or keywords. Use before writing "
                "code against a plugin you have not called yet in this conversation."
            ),
            args_schema=SearchCodeExamplesInput,
        )

    def _create_write_and_execute_code_tool(self) -> StructuredTool:
        async def write_and_execute_code(
            type: str,
            code: str,
            description: str | None = None,
            cron_schedule: str | None = None,
            webhook_trigger: Any = None,
        ) -> dict[str, Any]:
            check = await self._runner.typecheck(code)
            if not check.valid:
                return {"success": False, "error": "Typecheck failed", "errors": check.errors}

            if type == "script":
                return await self._run_script(code, _clean(description))
            return self._validate_workflow(code, _clean(description), _clean(cron_schedule), _as_dict(webhook_trigger))

        return StructuredTool.from_function(
            coroutine=write_and_execute_code,
            name=WRITE_AND_EXECUTE_CODE,
            description=(
                "Write code, typecheck it, and run it (scripts) or validate it (workflows). "
                "Returns errors for retry."
            ),
            args_schema=WriteAndExecuteCodeInput,
        )

    async def _run_script(self, code: str, description: str | None) -> dict[str, Any]:
        result = await self._runner.run(code)
        if result.success:
            return {
                "success": True,
                "type": "script",
                "code": code,
                "output": snippet_output(result.output) if result.output else None,
                "description": description,
            }

        signal = parse_permission_signal(result.error)
        if signal is not None:
            return {
                "success": False,
                "error": "Permission required",
                "permission_required": {"endpoint": signal.endpoint, "args": signal.args},
                "hint": (
                    "Call request_permission with exactly this endpoint and args, share the "
                    "approval link with the user, then call ask_human to wait for the decision."
                ),
            }

        failure: dict[str, Any] = {
            "success": False,
            "error": "Script execution failed",
            "errors": result.error,
        }
        if result.output:
            failure["output_snippet"] = snippet_output(result.output)
        return failure

    def _validate_workflow(
        self,
        code: str,
        description: str | None,
        cron_schedule: str | None,
        webhook_trigger: dict[str, Any] | None,
    ) -> dict[str, Any]:
        entry_points = self._runner.extract_entry_points(code)
        if len(entry_points) != 1:
            return {
                "success": False,
                "error": (
                    "Workflow must export exactly one async function, e.g. "
                    f'"export async function myWorkflow() {{ ... }}". Found {len(entry_points)}.'
                ),
            }
        if cron_schedule and webhook_trigger:
            return {"success": False, "error": "Pass either cron_schedule or webhook_trigger, not both"}
        if cron_schedule:
            try:
                parse_cron(cron_schedule)
            except InvalidScheduleError as e:
                return {"success": False, "error": str(e)}

        return {
            "success": True,
            "type": "workflow",
            "code": code,
            "name": entry_points[0],
            "description": description,
            "cron_schedule": cron_schedule,
            "webhook_trigger": webhook_trigger,
        }

    def _create_manage_workflows_tool(self) -> StructuredTool:
        async def manage_workflows(
            action: str,
            trigger_type: str | None = None,
            workflow_id: str | None = None,
            name: str | None = None,
            code: str | None = None,
            description: str | None = None,
            cron_schedule: str | None = None,
            webhook_trigger: Any = None,
            status: str | None = None,
        ) -> dict[str, Any]:
            if action == "list":
                workflows = await self._workflows.list_workflows(trigger_type)
                return {"workflows": [workflow_to_dict(w) for w in workflows]}

            if action == "create":
                result = await self._workflows.create(
                    name=(name or workflow_id or "").strip(),
                    code=code or "",
                    description=description,
                    cron_schedule=_clean(cron_schedule),
                    webhook_trigger=_as_dict(webhook_trigger),
                    notify_target=self._capabilities.session_key,
                )
                return result.to_dict()

            if not workflow_id:
                return {"success": False, "error": f"workflow_id is required for {action}"}

            if action == "archive":
                result = await self._workflows.archive(workflow_id)
            else:
                result = await self._workflows.update(
                    workflow_id,
                    code=code,
                    description=description,
                    cron_schedule=_clean(cron_schedule),
                    webhook_trigger=_as_dict(webhook_trigger),
                    status=status,
                )
            return result.to_dict()

        return StructuredTool.from_function(
            coroutine=manage_workflows,
            name="manage_workflows",
            description=(
                "List (optional trigger_type filter), create (store a new workflow), "
                "update (workflow_id + fields) or archive (workflow_id) workflows."
            ),
            args_schema=ManageWorkflowsInput,
        )

    def _create_request_permission_tool(self) -> StructuredTool:
        async def request_permission(endpoint: str, args: dict[str, Any], description: str) -> dict[str, Any]:
            try:
                request = await self._broker.request(
                    endpoint, args, description, session_key=self._capabilities.session_key
                )
            except ValueError as e:
                return {"success": False, "error": str(e)}

            self._state.permission_ids.append(request.id)
            return {
                "success": True,
                "permission_id": request.id,
                "approval_url": f"{self._public_base_url}/permissions/{request.id}",
                "message": "Share the approval link with the user, then call ask_human to wait.",
            }

        return StructuredTool.from_function(
            coroutine=request_permission,
            name="request_permission",
            description=(
                "Request human approval for one protected call (exact endpoint and args). "
                "Returns the request id and an approval link."
            ),
            args_schema=RequestPermissionInput,
        )

    def _create_conversation_history_tool(self) -> StructuredTool:
        channel = self._capabilities.channel or ""
        chat_id = self._capabilities.chat_id or ""

        async def get_conversation_history(limit: int) -> dict[str, Any]:
            async with self._db.session() as session:
                rows = await ChannelMessageRepository(session).recent_for_chat(channel, chat_id, limit)
            return {
                "messages": [
                    {
                        "sender": "bot" if row.is_bot else (row.sender_name or row.sender_id),
                        "content": row.content,
                        "sent_at": row.sent_at.isoformat(),
                    }
                    for row in rows
                ]
            }

        return StructuredTool.from_function(
            coroutine=get_conversation_history,
            name="get_conversation_history",
            description=(
                "Fetch recent messages from the current chat, oldest first. Start with a "
                "small limit and call again with a larger one if needed."
            ),
            args_schema=ConversationHistoryInput,
        )
