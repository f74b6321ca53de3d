"""Prompt used to start a diagnostic turn after a workflow failure."""

import json
from typing import Any

from langchain_core.prompts import PromptTemplate

ESCALATION_TEMPLATE = PromptTemplate(
    template=(
        "A {trigger_type} workflow failed and needs your attention.\n\n"
        "Workflow ID: {workflow_id}\n"
        "Workflow name: {workflow_name}\n"
        "Trigger type: {trigger_type}\n\n"
        "Error:\n{error}\n"
        "{payload_section}"
        "\nWorkflow code:\n```\n{code}\n```\n\n"
        "Please:\n"
        "1. Diagnose the error. Read the code and the error to find the root cause.\n"
        "2. Fix the missed run. Write and execute a one-off script that does what the "
        "workflow was supposed to do for this failed invocation{payload_hint}.\n"
        "3. Fix and update the workflow. Correct the underlying issue and update it via "
        "manage_workflows so it won't fail again."
    ),
    input_variables=[
        "trigger_type",
        "workflow_id",
        "workflow_name",
        "error",
        "payload_section",
        "code",
        "payload_hint",
    ],
)


def build_escalation_prompt(
    workflow_id: str,
    workflow_name: str,
    code: str,
    trigger_type: str,
    error: str,
    event_payload: Any = None,
) -> str:
    """Render the escalation prompt, including the event payload when present."""
    payload_section = ""
    payload_hint = ""
    if event_payload:
        rendered = json.dumps(event_payload, indent=2, default=str)
        payload_section = f"\nEvent payload that triggered this run:\n{rendered}\n"
        payload_hint = ", using the event payload above"

    return ESCALATION_TEMPLATE.format(
        trigger_type=trigger_type,
        workflow_id=workflow_id,
        workflow_name=workflow_name,
        error=error,
        payload_section=payload_section,
        code=code,
        payload_hint=payload_hint,
    )
