"""FastAPI routes for course generation jobs."""

import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, RootModel

from automator.api.deps import get_job_service_dep, get_optional_user
from automator.models.course import CourseContent, CourseFormData
from automator.models.job import JobRecord
from automator.services.auth import AuthUser
from automator.services.jobs import JobService, not_found_payload
from automator.utils.errors import (
    AuthError,
    AutomatorError,
    BillingError,
    ConfigurationError,
    GenerationError,
    QuotaExceededError,
)

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["generate-course"])


# ==================== Error Response Model ====================


class ErrorResponse(BaseModel):
    """Standard error response model."""

    success: bool = False
    error: str
    error_type: str
    errors: Optional[List[Dict[str, Any]]] = None


# ==================== Exception Handlers ====================


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error="Validation error", error_type="ValidationError", errors=errors
        ).model_dump(),
    )


async def automator_exception_handler(request: Request, exc: AutomatorError) -> JSONResponse:
    """Handle application-specific errors."""
    # Determine appropriate status code based on error type
    status_code = 500

    if isinstance(exc, QuotaExceededError):
        status_code = 402
    elif isinstance(exc, AuthError):
        status_code = 401
    elif isinstance(exc, ConfigurationError):
        status_code = 503
    elif isinstance(exc, (GenerationError, BillingError)):
        status_code = 502  # Bad Gateway for external API errors

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=str(exc), error_type=type(exc).__name__).model_dump(
            exclude_none=True
        ),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), error_type="HTTPException").model_dump(
            exclude_none=True
        ),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error", error_type="InternalError").model_dump(
            exclude_none=True
        ),
    )


# ==================== Request/Response Models ====================


class StartJobCommand(BaseModel):
    """Start a new generation job."""

    model_config = ConfigDict(populate_by_name=True)

    action: Literal["start"]
    form_data: CourseFormData = Field(alias="formData")
    client_info: Optional[Dict[str, Any]] = Field(default=None, alias="clientInfo")


class JobStatusCommand(BaseModel):
    """Query the state of an existing job."""

    model_config = ConfigDict(populate_by_name=True)

    action: Literal["status"]
    job_id: str = Field(min_length=1, alias="jobId")


class GenerateCourseRequest(
    RootModel[
        Annotated[Union[StartJobCommand, JobStatusCommand], Field(discriminator="action")]
    ]
):
    """Body of ``POST /generate-course``, discriminated on ``action``."""


class StartJobResponse(BaseModel):
    """Response model for job submission."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    job_id: str = Field(alias="jobId")
    status: Literal["processing", "error"]
    milestone: str
    error: Optional[str] = None


class JobStatusResponse(BaseModel):
    """Response model for status queries."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    job_id: str = Field(alias="jobId")
    status: Literal["processing", "completed", "error", "not_found"]
    progress_percent: int = Field(default=0, alias="progressPercent")
    milestone: Optional[str] = None
    status_message: Optional[str] = Field(default=None, alias="statusMessage")
    data: Optional[CourseContent] = None
    error: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = Field(default=None, alias="errorDetails")


def build_start_response(record: JobRecord) -> StartJobResponse:
    return StartJobResponse(
        success=True,
        job_id=record.job_id,
        status="error" if record.status == "error" else "processing",
        milestone=record.milestone,
        error=record.error,
    )


def build_status_response(job_id: str, record: Optional[JobRecord]) -> JobStatusResponse:
    """Shape a job record (None meaning unknown job) as a status response."""
    if record is None:
        payload = not_found_payload(job_id)
        return JobStatusResponse(
            success=True,
            job_id=job_id,
            status="not_found",
            progress_percent=0,
            error=payload["error"],
            error_details=payload["error_details"],
        )

    return JobStatusResponse(
        success=True,
        job_id=record.job_id,
        status=record.status,
        progress_percent=record.progress_percent,
        milestone=record.milestone,
        status_message=record.status_message,
        data=record.data,
        error=record.error,
        error_details=record.error_details,
    )


# ==================== Endpoints ====================


def _json(response: BaseModel) -> JSONResponse:
    # Either response shape may be returned, so serialize explicitly by alias
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True, exclude_none=True))


@router.post("/generate-course", response_model=None)
async def generate_course(
    request: GenerateCourseRequest,
    background_tasks: BackgroundTasks,
    jobs: JobService = Depends(get_job_service_dep),
    user: Optional[AuthUser] = Depends(get_optional_user),
) -> JSONResponse:
    """
    Start a generation job or query its status.

    ``{"action": "start", "formData": {...}}`` creates a job and returns its id
    immediately; generation continues in the background.
    ``{"action": "status", "jobId": "..."}`` returns the job's current state.
    """
    command = request.root

    if isinstance(command, StartJobCommand):
        if command.client_info:
            logger.info(f"Client info: {command.client_info}")
        record = await jobs.start_job(command.form_data, background_tasks.add_task, user=user)
        return _json(build_start_response(record))

    return _json(build_status_response(command.job_id, jobs.get_status(command.job_id)))


@router.get(
    "/generate-course/status/{job_id}",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
)
async def get_job_status(
    job_id: str,
    jobs: JobService = Depends(get_job_service_dep),
) -> JobStatusResponse:
    """Get the status of a generation job."""
    return build_status_response(job_id, jobs.get_status(job_id))
