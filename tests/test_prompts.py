"""Tests for centralized prompt templates."""

from cadence.core.prompts import (
    CHANNEL_HISTORY_SECTION,
    PERMISSION_OUTCOME_TEMPLATE,
    SYSTEM_PROMPT,
    WORKFLOW_FAILED_TEMPLATE,
    WORKFLOW_FAILURE_PROMPT,
    WORKFLOW_SUCCEEDED_TEMPLATE,
    build_system_prompt,
)


class TestBuildSystemPrompt:
    def test_base_prompt(self):
        assert build_system_prompt() == SYSTEM_PROMPT

    def test_channel_adds_history_section(self):
        prompt = build_system_prompt(channel=True)

        assert prompt.startswith(SYSTEM_PROMPT)
        assert prompt.endswith(CHANNEL_HISTORY_SECTION)

    def test_extra_goes_last(self):
        prompt = build_system_prompt(channel=True, extra=WORKFLOW_FAILURE_PROMPT)

        assert prompt.endswith(WORKFLOW_FAILURE_PROMPT)
        assert CHANNEL_HISTORY_SECTION in prompt

    def test_every_tool_is_described(self):
        for tool in (
            "ask_human",
            "search_code_examples",
            "write_and_execute_code",
            "manage_workflows",
            "request_permission",
        ):
            assert f"**{tool}**" in SYSTEM_PROMPT


class TestNotificationTemplates:
    def test_workflow_messages(self):
        assert WORKFLOW_SUCCEEDED_TEMPLATE.format(name="sendDigest") == 'Workflow ran: "sendDigest".'
        assert WORKFLOW_FAILED_TEMPLATE.format(name="sendDigest") == (
            'Workflow "sendDigest" failed. I\'m looking into it.'
        )

    def test_permission_outcome(self):
        text = PERMISSION_OUTCOME_TEMPLATE.format(
            permission_id="p1", endpoint="slack.postMessage", status="granted"
        )
        assert text == "Permission request p1 for slack.postMessage was granted."
