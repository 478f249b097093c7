"""Compile-validate-execute pipeline tying the components together."""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from codialog.browser.forms import FormModelBuilder
from codialog.browser.heuristics import HeuristicCompiler
from codialog.core.fallback import FallbackGenerator, GenerationError
from codialog.core.models import (
    AcceptedScript,
    DraftScript,
    ExecutionResult,
    FormElement,
    ScriptValidationError,
    UserProfile,
)
from codialog.core.validator import ScriptValidator, ValidationOutcome
from codialog.runner.supervisor import ExecutionSupervisor
from codialog.utils.logging import get_logger

logger = get_logger(__name__)


class CompilationStatus(str, Enum):
    """Terminal states of a compilation."""
    ACCEPTED = "accepted"
    INVALID = "invalid"
    EMPTY = "empty"


class ScriptSource(str, Enum):
    """Which component produced the script."""
    HEURISTIC = "heuristic"
    FALLBACK = "fallback"


@dataclass
class CompilationResult:
    """Everything a caller needs to act on or report a compilation."""
    status: CompilationStatus
    source: ScriptSource
    coverage_ratio: float
    script: Optional[AcceptedScript] = None
    errors: List[ScriptValidationError] = field(default_factory=list)
    unmapped_fields: List[str] = field(default_factory=list)
    fallback_error: Optional[str] = None
    fallback_errors: List[ScriptValidationError] = field(default_factory=list)

    @property
    def script_text(self) -> str:
        return self.script.to_text() if self.script else ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "source": self.source.value,
            "coverage_ratio": self.coverage_ratio,
            "script": self.script_text,
            "errors": [e.model_dump(mode="json") for e in self.errors],
            "unmapped_fields": self.unmapped_fields,
            "fallback_error": self.fallback_error,
            "fallback_errors": [e.model_dump(mode="json") for e in self.fallback_errors],
        }


class FormScriptPipeline:
    """
    Facade over form analysis, compilation, validation and execution.

    Every compilation ends in exactly one observable state: an accepted script,
    a list of validation errors, or an explicit empty result when no actions
    could be generated at all.
    """

    def __init__(
        self,
        form_builder: Optional[FormModelBuilder] = None,
        compiler: Optional[HeuristicCompiler] = None,
        fallback: Optional[FallbackGenerator] = None,
        validator: Optional[ScriptValidator] = None,
        supervisor: Optional[ExecutionSupervisor] = None
    ):
        self.form_builder = form_builder or FormModelBuilder()
        self.compiler = compiler or HeuristicCompiler()
        self.fallback = fallback
        self.validator = validator or ScriptValidator()
        self.supervisor = supervisor or ExecutionSupervisor()
        self.logger = logger.bind(component="form_script_pipeline")

    def analyze(self, markup: str) -> List[FormElement]:
        return self.form_builder.build(markup)

    def validate(self, draft: Union[DraftScript, str]) -> ValidationOutcome:
        return self.validator.validate(draft)

    async def compile(
        self,
        markup: str,
        profile: UserProfile,
        use_fallback: bool = True
    ) -> CompilationResult:
        """
        Compile markup and profile into an accepted script.

        Args:
            markup: Page markup snapshot
            profile: User profile values
            use_fallback: Allow the text-generation fallback when coverage is low

        Returns:
            Compilation result with status ACCEPTED, INVALID or EMPTY
        """
        elements = self.analyze(markup)
        heuristic = self.compiler.compile(elements, profile)

        fallback_error: Optional[str] = None
        fallback_errors: List[ScriptValidationError] = []

        if (
            use_fallback
            and self.fallback is not None
            and self.fallback.should_generate(heuristic.coverage_ratio, heuristic.has_submit, markup)
        ):
            try:
                draft = await self.fallback.generate(markup, profile, heuristic.coverage_ratio)
                outcome = self.validator.validate(draft)
                if outcome.is_valid:
                    self.logger.info(
                        "Using generated script",
                        actions=len(outcome.accepted.actions),
                        heuristic_coverage=heuristic.coverage_ratio
                    )
                    return CompilationResult(
                        status=CompilationStatus.ACCEPTED,
                        source=ScriptSource.FALLBACK,
                        coverage_ratio=heuristic.coverage_ratio,
                        script=outcome.accepted,
                        unmapped_fields=heuristic.unmapped_fields,
                    )
                fallback_errors = outcome.errors
                fallback_error = "Generated script failed validation"
            except GenerationError as e:
                fallback_error = f"{e.kind.value}: {e.message}"

            self.logger.warning(
                "Fallback unusable, keeping heuristic script",
                fallback_error=fallback_error,
                heuristic_actions=len(heuristic.script)
            )

        if heuristic.script.is_empty:
            self.logger.warning("No actions could be generated", elements=len(elements))
            return CompilationResult(
                status=CompilationStatus.EMPTY,
                source=ScriptSource.HEURISTIC,
                coverage_ratio=heuristic.coverage_ratio,
                unmapped_fields=heuristic.unmapped_fields,
                fallback_error=fallback_error,
                fallback_errors=fallback_errors,
            )

        outcome = self.validator.validate(DraftScript.from_script(heuristic.script))
        return CompilationResult(
            status=CompilationStatus.ACCEPTED if outcome.is_valid else CompilationStatus.INVALID,
            source=ScriptSource.HEURISTIC,
            coverage_ratio=heuristic.coverage_ratio,
            script=outcome.accepted,
            errors=outcome.errors,
            unmapped_fields=heuristic.unmapped_fields,
            fallback_error=fallback_error,
            fallback_errors=fallback_errors,
        )

    async def execute(
        self,
        script: AcceptedScript,
        timeout: Union[float, timedelta, None] = None,
        session_id: str = "default",
        wait: bool = True
    ) -> ExecutionResult:
        return await self.supervisor.execute(script, timeout=timeout, session_id=session_id, wait=wait)


def create_pipeline(model: Optional[Any] = None, **supervisor_options) -> FormScriptPipeline:
    """Create a pipeline with a fallback generator configured from settings."""
    return FormScriptPipeline(
        fallback=FallbackGenerator(model=model),
        supervisor=ExecutionSupervisor(**supervisor_options),
    )
