"""Workflow routes: management, manual runs and execution history."""

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cadence.api.dependencies import Orchestrator, get_workflow_service
from cadence.api.schemas.workflows import (
    ExecutionListResponse,
    ExecutionResponse,
    WorkflowCreate,
    WorkflowListResponse,
    WorkflowResponse,
    WorkflowTriggerResponse,
    WorkflowUpdate,
)
from cadence.db.models import Workflow, WorkflowStatus
from cadence.workflows.service import WorkflowResult, WorkflowService, workflow_to_dict

router = APIRouter(prefix="/workflows", tags=["workflows"])


def _to_response(workflow: Workflow, include_code: bool = False) -> WorkflowResponse:
    return WorkflowResponse(**workflow_to_dict(workflow, include_code=include_code))


def _raise_failure(result: WorkflowResult) -> NoReturn:
    if result.not_found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.error)
    detail = {"error": result.error, "errors": result.errors} if result.errors else result.error
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# =============================================================================
# List / History
# =============================================================================


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
    trigger_type: str | None = Query(None, description="Filter by trigger type (cron, webhook, manual, all)"),
    include_archived: bool = Query(False, description="Include archived workflows"),
) -> WorkflowListResponse:
    """List workflows, optionally filtered by trigger type."""
    workflows = await service.list_workflows(trigger_type, include_archived)
    return WorkflowListResponse(
        workflows=[_to_response(w) for w in workflows],
        total=len(workflows),
    )


@router.get("/executions", response_model=ExecutionListResponse)
async def list_executions(
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
    workflow: str | None = Query(None, description="Workflow id or name"),
    limit: int = Query(50, ge=1, le=500),
) -> ExecutionListResponse:
    """List recent executions, newest first."""
    executions = await service.list_executions(workflow, limit)
    return ExecutionListResponse(
        executions=[ExecutionResponse.model_validate(e) for e in executions],
        total=len(executions),
    )


# =============================================================================
# Create / Read / Update / Archive
# =============================================================================


@router.post("", response_model=WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    data: WorkflowCreate,
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
) -> WorkflowResponse:
    """Validate and store a workflow.

    Raises:
        HTTPException: 400 if validation fails or the name is taken
    """
    result = await service.create(
        name=data.name,
        code=data.code,
        description=data.description,
        cron_schedule=data.cron_schedule,
        webhook_trigger=data.webhook_trigger.model_dump() if data.webhook_trigger else None,
        notify_target=data.notify_target,
    )
    if not result.success or result.workflow is None:
        _raise_failure(result)
    return _to_response(result.workflow, include_code=True)


@router.get("/{ref}", response_model=WorkflowResponse)
async def get_workflow(
    ref: str,
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
) -> WorkflowResponse:
    """Get a workflow, including its code, by id or name."""
    workflow = await service.get(ref)
    if workflow is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f'Workflow "{ref}" not found')
    return _to_response(workflow, include_code=True)


@router.put("/{ref}", response_model=WorkflowResponse)
async def update_workflow(
    ref: str,
    data: WorkflowUpdate,
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
) -> WorkflowResponse:
    """Update a workflow. Omitted fields are left unchanged.

    Raises:
        HTTPException: 404 if the workflow does not exist
        HTTPException: 400 if validation fails
    """
    result = await service.update(
        ref,
        code=data.code,
        description=data.description,
        cron_schedule=data.cron_schedule,
        webhook_trigger=data.webhook_trigger.model_dump() if data.webhook_trigger else None,
        status=data.status,
        notify_target=data.notify_target,
    )
    if not result.success or result.workflow is None:
        _raise_failure(result)
    return _to_response(result.workflow, include_code=True)


@router.delete("/{ref}", response_model=WorkflowResponse)
async def archive_workflow(
    ref: str,
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
) -> WorkflowResponse:
    """Archive a workflow. Workflows are never hard-deleted.

    Raises:
        HTTPException: 404 if the workflow does not exist
    """
    result = await service.archive(ref)
    if not result.success or result.workflow is None:
        _raise_failure(result)
    return _to_response(result.workflow)


# =============================================================================
# Manual Trigger
# =============================================================================


@router.post("/{ref}/trigger", response_model=WorkflowTriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_workflow(
    ref: str,
    orchestrator: Orchestrator,
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
) -> WorkflowTriggerResponse:
    """Run a workflow now in the background.

    Raises:
        HTTPException: 404 if the workflow does not exist
        HTTPException: 409 if the workflow is archived
    """
    workflow = await service.get(ref)
    if workflow is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f'Workflow "{ref}" not found')
    if workflow.status == WorkflowStatus.ARCHIVED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f'Workflow "{ref}" is archived')

    orchestrator.trigger_workflow(workflow.id)
    return WorkflowTriggerResponse(status="started", workflow_id=workflow.id)
