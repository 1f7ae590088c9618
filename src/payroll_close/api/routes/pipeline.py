"""Payroll close pipeline endpoints."""

from fastapi import APIRouter, status

from payroll_close.api.dependencies import Operator, Pipeline
from payroll_close.api.schemas import ErrorResponse, PeriodResponse, TransitionResponse
from payroll_close.services.pipeline_service import TransitionResult
from payroll_close.services.state_machine import PipelineStateMachine, StageOperation

router = APIRouter(prefix="/pipeline", tags=["pipeline"])

_TRANSITION_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _to_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        status=result.status,
        operation=result.operation,
        stage=result.stage,
        stage_label=PipelineStateMachine.describe(result.stage),
        message=result.message,
        year=result.year,
        month=result.month,
        details=result.details,
    )


@router.get(
    "/period",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_period(pipeline: Pipeline) -> PeriodResponse:
    """Current processing period and the operations allowed at its stage."""
    period = await pipeline.get_period()
    return PeriodResponse(
        year=period.year,
        month=period.month,
        previous_month=period.previous_month,
        stage=period.stage,
        stage_label=PipelineStateMachine.describe(period.stage),
        allowed_operations=[
            op.value for op in PipelineStateMachine.allowed_operations(period.stage)
        ],
        updated_by=period.updated_by,
        updated_at=period.updated_at,
    )


# ============================================================================
# Stage transitions
# ============================================================================


@router.post(
    "/save",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
    responses=_TRANSITION_RESPONSES,
)
async def save_payroll_files(pipeline: Pipeline, user: Operator) -> TransitionResponse:
    """Close data entry for the period."""
    return _to_response(await pipeline.run(StageOperation.SAVE, user))


@router.post(
    "/personnel-report",
    response_model=TransitionResponse,
    responses=_TRANSITION_RESPONSES,
)
async def record_personnel_report(pipeline: Pipeline, user: Operator) -> TransitionResponse:
    """Record that the personnel report was produced."""
    return _to_response(await pipeline.run(StageOperation.PERSONNEL_REPORT, user))


@router.post(
    "/input-variable-report",
    response_model=TransitionResponse,
    responses=_TRANSITION_RESPONSES,
)
async def record_input_variable_report(pipeline: Pipeline, user: Operator) -> TransitionResponse:
    """Record that the input variable report was produced."""
    return _to_response(await pipeline.run(StageOperation.INPUT_VARIABLE_REPORT, user))


@router.post(
    "/master-file-update",
    response_model=TransitionResponse,
    responses=_TRANSITION_RESPONSES,
)
async def update_master_files(pipeline: Pipeline, user: Operator) -> TransitionResponse:
    """Extract the workforce and rebuild the master files."""
    return _to_response(await pipeline.run(StageOperation.MASTER_FILE_UPDATE, user))


@router.post(
    "/backup",
    response_model=TransitionResponse,
    responses=_TRANSITION_RESPONSES,
)
async def backup(pipeline: Pipeline, user: Operator) -> TransitionResponse:
    """Snapshot the calculation inputs."""
    return _to_response(await pipeline.run(StageOperation.BACKUP, user))


@router.post(
    "/restore",
    response_model=TransitionResponse,
    responses=_TRANSITION_RESPONSES,
)
async def restore(pipeline: Pipeline, user: Operator) -> TransitionResponse:
    """Roll the calculation inputs back to the last backup."""
    return _to_response(await pipeline.run(StageOperation.RESTORE, user))


@router.post(
    "/calculate",
    response_model=TransitionResponse,
    responses=_TRANSITION_RESPONSES,
)
async def calculate(pipeline: Pipeline, user: Operator) -> TransitionResponse:
    """Run the payroll calculation."""
    return _to_response(await pipeline.run(StageOperation.CALCULATE, user))


@router.post(
    "/recall",
    response_model=TransitionResponse,
    responses=_TRANSITION_RESPONSES,
)
async def recall_payroll_files(pipeline: Pipeline, user: Operator) -> TransitionResponse:
    """Reopen data entry for the period."""
    return _to_response(await pipeline.run(StageOperation.RECALL, user))
