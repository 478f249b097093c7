"""
Fallback Generator: asks a text-generation model for a script when heuristics fall short.

The model response is untrusted text. Only lines whose first token is a known
command verb survive sanitisation; everything else is dropped, and the survivors
still go through the script validator before anything can run.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI

from codialog.browser.forms import FormModelBuilder, count_complexity_indicators
from codialog.config import settings
from codialog.core.grammar import COMMAND_ARITY
from codialog.core.models import DraftScript, FormElement, UserProfile
from codialog.utils.logging import get_logger, log_function_call

logger = get_logger(__name__)


class GenerationErrorKind(str, Enum):
    """Failure modes of the fallback generator."""
    SERVICE_UNAVAILABLE = "service_unavailable"
    EMPTY_RESULT = "empty_result"


class GenerationError(Exception):
    """Raised when no usable script could be generated."""

    def __init__(self, kind: GenerationErrorKind, message: str = ""):
        self.kind = kind
        self.message = message or kind.value
        super().__init__(self.message)


GRAMMAR_PROMPT = """You write automation scripts that fill in and submit web forms.

Allowed commands, one per line, every argument in double quotes:
click "<selector>"
hover "<selector>"
type "<selector>" "<value>"
upload "<selector>" "<path>"

Rules:
1. Use CSS selectors (#id, .class, tag[attribute="value"]) taken from the element summary
2. Log in first if the form needs it
3. Fill every field the user data covers, using the values exactly as given
4. Escape a double quote inside a value as \\" and a backslash as \\\\
5. Finish by clicking the submit or apply button
6. Return ONLY commands: no prose, no comments, no code fences"""


def sanitize_response(text: str) -> List[str]:
    """Keep only lines whose first token is a known command verb."""
    kept = []
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        first_token = line.split(None, 1)[0]
        if first_token in COMMAND_ARITY:
            kept.append(line)
    return kept


def summarize_elements(elements: List[FormElement]) -> List[Dict[str, Any]]:
    """Condensed element view sent instead of raw markup."""
    summary = []
    for element in elements:
        entry: Dict[str, Any] = {"selector": element.selector, "kind": element.kind.value}
        if element.role_hint:
            entry["role"] = element.role_hint
        if element.label:
            entry["label"] = element.label
        summary.append(entry)
    return summary


def is_complex_form(markup: str, min_indicators: Optional[int] = None) -> bool:
    """Multi-step or script-heavy forms go to the fallback generator regardless of coverage."""
    threshold = settings.complexity_min_indicators if min_indicators is None else min_indicators
    return count_complexity_indicators(markup) >= threshold


class FallbackGenerator:
    """
    Script generator backed by a chat model.

    Called at most once per compilation and never retried: a failed request is
    reported as ``GenerationError`` and the caller keeps the heuristic script.
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        form_builder: Optional[FormModelBuilder] = None,
        threshold: Optional[float] = None
    ):
        """
        Initialize the fallback generator.

        Args:
            model: Optional chat model for testing. If None, one is created from settings.
            form_builder: Builder used for the element summary
            threshold: Coverage ratio below which the fallback is used
        """
        self.logger = logger.bind(component="fallback_generator")
        if model is not None:
            self.model = model
        else:
            try:
                self.model = self._create_model()
            except ValueError:
                # No API keys available
                self.model = None
        self.form_builder = form_builder or FormModelBuilder()
        self.threshold = settings.fallback_threshold if threshold is None else threshold

    def _create_model(self) -> Any:
        """Create the chat model (Groq first, OpenAI otherwise)."""
        if settings.groq_api_key:
            return ChatGroq(
                model=settings.reasoning_model,
                api_key=settings.groq_api_key,
                temperature=0.0,
                max_tokens=settings.llm_max_tokens,
                timeout=settings.llm_timeout,
                max_retries=0,
            )
        elif settings.openai_api_key:
            self.logger.warning("Groq API key not found, falling back to OpenAI")
            return ChatOpenAI(
                model=settings.fallback_model,
                api_key=settings.openai_api_key,
                temperature=0.0,
                max_tokens=settings.llm_max_tokens,
                timeout=settings.llm_timeout,
                max_retries=0,
            )
        else:
            raise ValueError("No API keys configured for the fallback model")

    @property
    def available(self) -> bool:
        return self.model is not None

    def should_generate(self, coverage_ratio: float, has_submit: bool, markup: str) -> bool:
        """Decide whether heuristic output is weak enough to ask the model."""
        return (
            coverage_ratio < self.threshold
            or not has_submit
            or is_complex_form(markup)
        )

    def build_messages(self, markup: str, profile: UserProfile) -> List[Any]:
        """Build the structured request: grammar, element summary and profile."""
        elements = self.form_builder.build(markup)
        request = (
            "FORM ELEMENTS:\n"
            f"{json.dumps(summarize_elements(elements), indent=2, ensure_ascii=False)}\n\n"
            "USER DATA:\n"
            f"{json.dumps(profile.to_payload(), indent=2, ensure_ascii=False)}\n\n"
            "Generate the command sequence for this form:"
        )
        return [SystemMessage(content=GRAMMAR_PROMPT), HumanMessage(content=request)]

    async def generate(self, markup: str, profile: UserProfile, coverage_ratio: float) -> DraftScript:
        """
        Ask the model for a script and sanitise its answer.

        Args:
            markup: Page markup (summarised before sending)
            profile: User profile values
            coverage_ratio: Heuristic coverage that triggered the fallback

        Returns:
            Draft script made of the surviving command lines

        Raises:
            GenerationError: SERVICE_UNAVAILABLE if the model cannot be reached,
                EMPTY_RESULT if no command line survives sanitisation
        """
        self.logger.info(
            "Fallback generation requested",
            **log_function_call("generate", markup_length=len(markup or ""), coverage_ratio=coverage_ratio)
        )

        if self.model is None:
            raise GenerationError(
                GenerationErrorKind.SERVICE_UNAVAILABLE,
                "No text-generation model configured"
            )

        try:
            response = await self.model.ainvoke(self.build_messages(markup, profile))
        except Exception as e:
            self.logger.error(
                "Text-generation request failed",
                error=str(e),
                error_type=type(e).__name__
            )
            raise GenerationError(GenerationErrorKind.SERVICE_UNAVAILABLE, str(e)) from e

        lines = sanitize_response(_response_text(response))
        if not lines:
            self.logger.warning("Generated response contained no commands")
            raise GenerationError(GenerationErrorKind.EMPTY_RESULT, "No commands in generated response")

        self.logger.info("Fallback script generated", lines=len(lines))
        return DraftScript.from_lines(lines)


def _response_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        # Content blocks from multimodal chat models
        return "\n".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return content if isinstance(content, str) else str(content or "")


def create_fallback_generator(model: Optional[Any] = None) -> FallbackGenerator:
    """Factory function to create a fallback generator."""
    return FallbackGenerator(model=model)
