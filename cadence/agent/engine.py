"""Agent turn engine.

Drives one model-assisted turn from a prompt (or a resumed continuation) to
a terminal outcome or to a pause at ``ask_human``. The loop is explicit so
that the model-visible message list is always available for serialization.
"""

import json
import logging
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool

from cadence.agent.examples import ExampleCatalogue, load_examples
from cadence.agent.continuation import Continuation, resume_messages, serialize_messages
from cadence.agent.outcomes import (
    Done,
    NeedsInput,
    Outcome,
    ScriptOutcome,
    ToolCallRecord,
    WorkflowOutcome,
)
from cadence.agent.tools import (
    ASK_HUMAN,
    ASK_HUMAN_TOOL,
    WRITE_AND_EXECUTE_CODE,
    AgentToolkit,
    TurnCapabilities,
    TurnState,
)
from cadence.core.prompts import build_system_prompt
from cadence.db.database import DatabaseManager
from cadence.permissions.broker import PermissionBroker
from cadence.sandbox.runner import CodeRunner
from cadence.workflows.service import WorkflowService

logger = logging.getLogger(__name__)

__all__ = ["AgentEngine", "TurnCapabilities", "message_text"]


def message_text(message: BaseMessage) -> str:
    """Plain text of a message whose content may be a list of blocks."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class AgentEngine:
    """Runs agent turns against a tool-calling chat model."""

    def __init__(
        self,
        model: BaseChatModel,
        runner: CodeRunner,
        workflows: WorkflowService,
        broker: PermissionBroker,
        db: DatabaseManager,
        public_base_url: str = "",
        max_rounds: int = 10,
        examples: ExampleCatalogue | None = None,
    ):
        """Initialize the engine.

        Args:
            model: Chat model supporting bind_tools.
            runner: Sandboxed code runner.
            workflows: Workflow management service.
            broker: Permission broker.
            db: Database manager (chat history tool).
            public_base_url: Base of approval links handed to the user.
            max_rounds: Maximum model calls per turn.
            examples: Catalogue behind search_code_examples (bundled
                examples when None).
        """
        self._model = model
        self._runner = runner
        self._workflows = workflows
        self._broker = broker
        self._db = db
        self._public_base_url = public_base_url
        self._max_rounds = max_rounds
        self._examples = examples if examples is not None else load_examples()

    async def run_turn(
        self,
        prompt: str,
        history: list[BaseMessage] | None = None,
        capabilities: TurnCapabilities | None = None,
        continuation: Continuation | None = None,
    ) -> Outcome:
        """Run one turn.

        Args:
            prompt: The user's message, or their answer when resuming.
            history: Prior conversation, oldest first. Ignored when resuming.
            capabilities: What the caller offers (channel identity, prompt extras).
            continuation: Parked turn to resume; prompt becomes the result of
                the parked tool call.

        Returns:
            Done, ScriptOutcome, WorkflowOutcome or NeedsInput.
        """
        capabilities = capabilities or TurnCapabilities()
        state = TurnState()

        if continuation is not None:
            messages = resume_messages(continuation, prompt)
        else:
            messages = [*(history or []), HumanMessage(content=prompt)]

        toolkit = AgentToolkit(
            runner=self._runner,
            workflows=self._workflows,
            broker=self._broker,
            db=self._db,
            capabilities=capabilities,
            state=state,
            examples=self._examples,
            public_base_url=self._public_base_url,
        )
        tools = toolkit.get_tools()
        tools_by_name = {tool.name: tool for tool in tools}
        model = self._model.bind_tools([*tools, ASK_HUMAN_TOOL])
        system = SystemMessage(
            content=build_system_prompt(
                channel=capabilities.has_chat_history,
                extra=capabilities.system_extra,
            )
        )

        records: list[ToolCallRecord] = []
        last_success: dict[str, Any] | None = None

        for round_number in range(1, self._max_rounds + 1):
            response = await model.ainvoke([system, *messages])
            if not isinstance(response, AIMessage):
                response = AIMessage(content=response.content)
            messages.append(response)

            if not response.tool_calls:
                return self._finish(message_text(response), last_success, records)

            logger.debug(f"Round {round_number}: {[c['name'] for c in response.tool_calls]}")

            ask_call: dict[str, Any] | None = None
            for call in response.tool_calls:
                call_id = call.get("id") or ""
                if call["name"] == ASK_HUMAN:
                    if ask_call is None:
                        ask_call = call
                    else:
                        messages.append(
                            ToolMessage(
                                content="Only one question can be asked at a time.",
                                tool_call_id=call_id,
                                name=ASK_HUMAN,
                            )
                        )
                        records.append(ToolCallRecord(id=call_id, name=ASK_HUMAN))
                    continue

                result = await self._execute_tool(tools_by_name, call["name"], call.get("args") or {})
                messages.append(
                    ToolMessage(
                        content=json.dumps(result, default=str),
                        tool_call_id=call_id,
                        name=call["name"],
                    )
                )
                records.append(ToolCallRecord(id=call_id, name=call["name"]))
                if call["name"] == WRITE_AND_EXECUTE_CODE and result.get("success"):
                    last_success = result

            if ask_call is not None:
                question = str((ask_call.get("args") or {}).get("question", "")).strip()
                records.append(ToolCallRecord(id=ask_call.get("id") or "", name=ASK_HUMAN, completed=False))
                logger.info("Turn paused waiting for human input")
                return NeedsInput(
                    question=question or "Could you clarify?",
                    tool_call_id=ask_call.get("id") or "",
                    tool_name=ASK_HUMAN,
                    continuation=serialize_messages(messages),
                    permission_ids=list(state.permission_ids),
                    tool_calls=records,
                )

        logger.warning(f"Turn stopped after {self._max_rounds} rounds")
        return Done(
            text=(
                f"I stopped after {self._max_rounds} steps without finishing. "
                "Tell me how you'd like to continue."
            ),
            tool_calls=records,
        )

    async def _execute_tool(
        self,
        tools_by_name: dict[str, BaseTool],
        name: str,
        args: dict[str, Any],
    ) -> dict[str, Any]:
        tool = tools_by_name.get(name)
        if tool is None:
            return {"success": False, "error": f"Unknown tool '{name}'"}
        try:
            result = await tool.ainvoke(args)
        except Exception as e:
            logger.warning(f"Tool {name} failed: {e}")
            return {"success": False, "error": str(e) or type(e).__name__}
        if isinstance(result, dict):
            return result
        return {"success": True, "result": result}

    def _finish(self, text: str, last_success: dict[str, Any] | None, records: list[ToolCallRecord]) -> Outcome:
        message = text.strip() or None
        if last_success is None:
            return Done(text=message or "", tool_calls=records)

        if last_success.get("type") == "script":
            return ScriptOutcome(
                code=last_success["code"],
                output=last_success.get("output"),
                description=last_success.get("description"),
                message=message,
                tool_calls=records,
            )
        return WorkflowOutcome(
            name=last_success["name"],
            code=last_success["code"],
            description=last_success.get("description"),
            cron_schedule=last_success.get("cron_schedule"),
            webhook_trigger=last_success.get("webhook_trigger"),
            message=message,
            tool_calls=records,
        )
