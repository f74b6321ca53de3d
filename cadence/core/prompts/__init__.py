"""Prompt text and message templates used by Cadence."""

from cadence.core.prompts.agent import (
    CHANNEL_HISTORY_SECTION,
    SYSTEM_PROMPT,
    WORKFLOW_FAILURE_PROMPT,
    build_system_prompt,
)
from cadence.core.prompts.escalation import ESCALATION_TEMPLATE, build_escalation_prompt
from cadence.core.prompts.notifications import (
    GENERIC_FAILURE_MESSAGE,
    PERMISSION_DECLINED_FOLLOWUP_TEMPLATE,
    PERMISSION_GRANTED_FOLLOWUP_TEMPLATE,
    PERMISSION_OUTCOME_TEMPLATE,
    WORKFLOW_FAILED_TEMPLATE,
    WORKFLOW_SUCCEEDED_TEMPLATE,
)

__all__ = [
    "CHANNEL_HISTORY_SECTION",
    "ESCALATION_TEMPLATE",
    "GENERIC_FAILURE_MESSAGE",
    "PERMISSION_DECLINED_FOLLOWUP_TEMPLATE",
    "PERMISSION_GRANTED_FOLLOWUP_TEMPLATE",
    "PERMISSION_OUTCOME_TEMPLATE",
    "SYSTEM_PROMPT",
    "WORKFLOW_FAILED_TEMPLATE",
    "WORKFLOW_FAILURE_PROMPT",
    "WORKFLOW_SUCCEEDED_TEMPLATE",
    "build_escalation_prompt",
    "build_system_prompt",
]
