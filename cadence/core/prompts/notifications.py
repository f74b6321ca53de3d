"""User-facing notification texts."""

from langchain_core.prompts import PromptTemplate

GENERIC_FAILURE_MESSAGE = "Sorry, something went wrong. Please try again."

WORKFLOW_SUCCEEDED_TEMPLATE = PromptTemplate(
    template='Workflow ran: "{name}".',
    input_variables=["name"],
)

WORKFLOW_FAILED_TEMPLATE = PromptTemplate(
    template='Workflow "{name}" failed. I\'m looking into it.',
    input_variables=["name"],
)

# Injected as the human's answer when a permission request is resolved
PERMISSION_OUTCOME_TEMPLATE = PromptTemplate(
    template="Permission request {permission_id} for {endpoint} was {status}.",
    input_variables=["permission_id", "endpoint", "status"],
)

# Queued into the requesting chat when no paused turn is waiting on the decision
PERMISSION_GRANTED_FOLLOWUP_TEMPLATE = PromptTemplate(
    template=(
        "Permission has been granted for: {description}. You MUST proceed using these "
        "exact args (do not re-resolve or change any values, as approval is only valid "
        "for these exact args): {args}"
    ),
    input_variables=["description", "args"],
)

PERMISSION_DECLINED_FOLLOWUP_TEMPLATE = PromptTemplate(
    template="Permission has been declined for: {description}. Please inform the user and stop.",
    input_variables=["description"],
)
