"""API routes for Codialog."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from codialog import __version__
from codialog.api.models import (
    AnalyzeRequest, AnalyzeResponse, ErrorResponse, GenerateRequest, GenerateResponse,
    HealthCheck, RunScriptRequest, RunScriptResponse, TemplateRequest, TemplateResponse,
    ValidateRequest, ValidateResponse,
)
from codialog.browser.forms import count_complexity_indicators
from codialog.browser.templates import TEMPLATES, render_template
from codialog.core.models import UserProfile
from codialog.core.pipeline import FormScriptPipeline, create_pipeline
from codialog.runner.supervisor import SessionBusyError, check_runner_installed
from codialog.utils.logging import get_logger

logger = get_logger(__name__)

# Global instance (initialized in main.py, created lazily otherwise)
pipeline: Optional[FormScriptPipeline] = None

# Create routers
health_router = APIRouter(prefix="/health", tags=["health"])
page_router = APIRouter(prefix="/page", tags=["page"])
dsl_router = APIRouter(prefix="/dsl", tags=["dsl"])
rpa_router = APIRouter(prefix="/rpa", tags=["rpa"])


def get_pipeline() -> FormScriptPipeline:
    """Return the shared pipeline, creating it on first use."""
    global pipeline
    if pipeline is None:
        pipeline = create_pipeline()
    return pipeline


def _profile_from(user_data: Dict[str, Any]) -> UserProfile:
    try:
        return UserProfile.model_validate(user_data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid user data: {e.error_count()} error(s)")


def error_response(status_code: int, error: str, message: str, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            details=details,
            timestamp=datetime.now(timezone.utc)
        ).model_dump(mode="json")
    )


@health_router.get("", response_model=HealthCheck)
async def health_check(current: FormScriptPipeline = Depends(get_pipeline)):
    """Report service and runner availability."""
    runner_ready = check_runner_installed(current.supervisor.runner_command)
    llm_ready = current.fallback is not None and current.fallback.available
    return HealthCheck(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        components={
            "runner": "installed" if runner_ready else "missing",
            "fallback_generator": "configured" if llm_ready else "unconfigured",
        }
    )


@page_router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_page(request: AnalyzeRequest, current: FormScriptPipeline = Depends(get_pipeline)):
    """Analyze markup into form elements."""
    elements = current.analyze(request.markup)
    logger.info("Page analyzed", markup_length=len(request.markup), elements=len(elements))
    return AnalyzeResponse(
        elements=elements,
        complexity_indicators=count_complexity_indicators(request.markup)
    )


@dsl_router.post("/generate", response_model=GenerateResponse)
async def generate_script(request: GenerateRequest, current: FormScriptPipeline = Depends(get_pipeline)):
    """Compile markup and user data into a validated script."""
    profile = _profile_from(request.user_data)
    result = await current.compile(request.markup, profile, use_fallback=request.use_fallback)
    logger.info(
        "Script generated",
        status=result.status.value,
        source=result.source.value,
        coverage_ratio=result.coverage_ratio
    )
    return GenerateResponse(**result.to_dict())


@dsl_router.post("/validate", response_model=ValidateResponse)
async def validate_script(request: ValidateRequest, current: FormScriptPipeline = Depends(get_pipeline)):
    """Validate script text and report every error."""
    outcome = current.validate(request.script)
    return ValidateResponse(
        valid=outcome.is_valid,
        actions=len(outcome.accepted.actions) if outcome.accepted else 0,
        errors=outcome.errors
    )


@dsl_router.get("/templates", response_model=List[str])
async def list_templates():
    """List available script templates."""
    return sorted(TEMPLATES)


@dsl_router.post("/templates/{name}", response_model=TemplateResponse)
async def build_template(name: str, request: TemplateRequest):
    """Render a template script from user data."""
    if name not in TEMPLATES:
        raise HTTPException(status_code=404, detail=f"Unknown template '{name}'")
    script = render_template(name, _profile_from(request.user_data))
    return TemplateResponse(name=name, script=script.to_text())


@rpa_router.post("/run", response_model=RunScriptResponse)
async def run_script(request: RunScriptRequest, current: FormScriptPipeline = Depends(get_pipeline)):
    """Validate and execute a script with the automation runner."""
    outcome = current.validate(request.script)
    if not outcome.is_valid:
        logger.warning("Refusing to run invalid script", errors=len(outcome.errors))
        return error_response(
            422,
            "ScriptValidationError",
            "Script failed validation",
            {"errors": [e.model_dump(mode="json") for e in outcome.errors]}
        )

    try:
        result = await current.execute(
            outcome.accepted,
            timeout=request.timeout,
            session_id=request.session_id,
            wait=request.wait
        )
    except SessionBusyError as e:
        return error_response(409, "SessionBusy", str(e), {"session_id": e.session_id})

    return RunScriptResponse(**result.model_dump())


# Export all routers
all_routers = [
    health_router,
    page_router,
    dsl_router,
    rpa_router,
]
