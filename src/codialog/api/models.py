"""API models for request/response schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from codialog.core.models import ExitReason, FormElement, ScriptValidationError


class AnalyzeRequest(BaseModel):
    """Request to analyze page markup."""
    markup: str = Field(..., description="Page or form markup")


class AnalyzeResponse(BaseModel):
    """Form elements discovered in the markup."""
    elements: List[FormElement] = Field(..., description="Elements in document order")
    complexity_indicators: int = Field(0, description="Number of complex-form indicators found")


class GenerateRequest(BaseModel):
    """Request to compile a script from markup and user data."""
    markup: str = Field(..., description="Page or form markup")
    user_data: Dict[str, Any] = Field(default_factory=dict, description="User profile values")
    use_fallback: bool = Field(True, description="Allow the text-generation fallback")


class GenerateResponse(BaseModel):
    """Compilation result."""
    status: str = Field(..., description="accepted, invalid or empty")
    source: str = Field(..., description="heuristic or fallback")
    coverage_ratio: float = Field(..., description="Heuristic coverage ratio")
    script: str = Field("", description="Accepted script text")
    errors: List[ScriptValidationError] = Field(default_factory=list, description="Validation errors")
    unmapped_fields: List[str] = Field(default_factory=list, description="Profile fields without a matching element")
    fallback_error: Optional[str] = Field(None, description="Why the fallback was not used")
    fallback_errors: List[ScriptValidationError] = Field(default_factory=list, description="Errors in the generated script")


class ValidateRequest(BaseModel):
    """Request to validate a script."""
    script: str = Field(..., description="Script text")


class ValidateResponse(BaseModel):
    """Validation outcome."""
    valid: bool = Field(..., description="Whether the script was accepted")
    actions: int = Field(0, description="Number of actions in the accepted script")
    errors: List[ScriptValidationError] = Field(default_factory=list, description="Every error found")


class TemplateRequest(BaseModel):
    """Request to render a template."""
    user_data: Dict[str, Any] = Field(default_factory=dict, description="User profile values")


class TemplateResponse(BaseModel):
    """Rendered template script."""
    name: str = Field(..., description="Template name")
    script: str = Field(..., description="Script text")


class RunScriptRequest(BaseModel):
    """Request to execute a script."""
    script: str = Field(..., description="Script text")
    timeout: Optional[float] = Field(None, gt=0, description="Timeout in seconds")
    session_id: str = Field("default", description="Browser session identifier")
    wait: bool = Field(True, description="Queue behind a running script instead of failing")


class RunScriptResponse(BaseModel):
    """Execution result."""
    success: bool = Field(..., description="Whether the runner completed successfully")
    exit_reason: ExitReason = Field(..., description="completed, timed_out or launch_failed")
    return_code: Optional[int] = Field(None, description="Runner exit code")
    stdout: str = Field("", description="Runner standard output")
    stderr: str = Field("", description="Runner standard error")
    duration_seconds: float = Field(0.0, description="Execution duration")
    session_id: str = Field("default", description="Browser session identifier")


class HealthCheck(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="Service version")
    components: Dict[str, str] = Field(..., description="Component status")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(..., description="Error timestamp")
