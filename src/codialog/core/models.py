"""Core data models for Codialog."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import Annotated

from codialog.core.grammar import format_command, split_lines


SEMANTIC_FIELDS: Tuple[str, ...] = (
    "fullname",
    "first_name",
    "last_name",
    "email",
    "phone",
    "username",
    "password",
    "linkedin",
    "github",
    "portfolio",
    "cover_letter",
    "salary",
    "cv_path",
    "cover_letter_path",
    "portfolio_path",
)


class ElementKind(str, Enum):
    """Kinds of interactive nodes the form model recognises."""
    TEXT_INPUT = "text_input"
    PASSWORD_INPUT = "password_input"
    EMAIL_INPUT = "email_input"
    TEL_INPUT = "tel_input"
    FILE_INPUT = "file_input"
    CHECKBOX = "checkbox"
    TEXT_AREA = "text_area"
    BUTTON = "button"


class FormElement(BaseModel):
    """One discoverable interactive node of a page snapshot."""

    model_config = ConfigDict(frozen=True)

    selector: str = Field(..., description="Selector identifying the node")
    kind: ElementKind = Field(..., description="Element kind")
    role_hint: Optional[str] = Field(None, description="Semantic role inferred from id/name/placeholder")
    input_type: Optional[str] = Field(None, description="Raw type attribute, lower-cased")
    label: Optional[str] = Field(None, description="Placeholder or visible button text")

    @property
    def is_submit_type(self) -> bool:
        return self.input_type == "submit"


class UserProfile(BaseModel):
    """Values for the fixed semantic field vocabulary; unset fields are absent."""

    model_config = ConfigDict(extra="ignore")

    fullname: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    portfolio: Optional[str] = None
    cover_letter: Optional[str] = None
    salary: Optional[str] = None
    cv_path: Optional[str] = None
    cover_letter_path: Optional[str] = None
    portfolio_path: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_scalars(cls, value: Any) -> Any:
        # JSON profiles often carry numbers, e.g. salary or phone
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def get(self, field: str) -> Optional[str]:
        """Return the value for a semantic field, or None when absent."""
        if field not in SEMANTIC_FIELDS:
            return None
        return getattr(self, field)

    def has(self, field: str) -> bool:
        """True when the field holds a non-empty value."""
        return bool(self.get(field))

    def filled_fields(self) -> List[str]:
        """Semantic fields holding a non-empty value, in vocabulary order."""
        return [field for field in SEMANTIC_FIELDS if self.has(field)]

    def to_payload(self) -> Dict[str, str]:
        """Present fields only, for structured requests."""
        return self.model_dump(exclude_none=True)


class ActionVerb(str, Enum):
    """Command verbs of the script grammar."""
    CLICK = "click"
    TYPE = "type"
    UPLOAD = "upload"
    HOVER = "hover"


class _ActionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    selector: str = Field(..., description="Target element selector")

    def arguments(self) -> Tuple[str, ...]:
        return (self.selector,)

    def to_line(self) -> str:
        """Serialize to one escaped script line."""
        return format_command(self.verb, self.arguments())


class Click(_ActionBase):
    verb: Literal["click"] = "click"


class Hover(_ActionBase):
    verb: Literal["hover"] = "hover"


class Type(_ActionBase):
    verb: Literal["type"] = "type"
    value: str = Field(..., description="Text to type")

    def arguments(self) -> Tuple[str, ...]:
        return (self.selector, self.value)


class Upload(_ActionBase):
    verb: Literal["upload"] = "upload"
    path: str = Field(..., description="Local path of the file to upload")

    def arguments(self) -> Tuple[str, ...]:
        return (self.selector, self.path)


Action = Annotated[Union[Click, Hover, Type, Upload], Field(discriminator="verb")]


def action_from_arguments(verb: str, arguments: List[str]) -> Union[Click, Hover, Type, Upload]:
    """Build an action from an already validated verb and argument list."""
    if verb == ActionVerb.CLICK.value:
        return Click(selector=arguments[0])
    if verb == ActionVerb.HOVER.value:
        return Hover(selector=arguments[0])
    if verb == ActionVerb.TYPE.value:
        return Type(selector=arguments[0], value=arguments[1])
    if verb == ActionVerb.UPLOAD.value:
        return Upload(selector=arguments[0], path=arguments[1])
    raise ValueError(f"Unknown command verb: {verb}")


class Script(BaseModel):
    """Ordered action sequence; order reproduces the intended interaction order."""

    actions: List[Action] = Field(default_factory=list, description="Actions in execution order")

    def __len__(self) -> int:
        return len(self.actions)

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def to_lines(self) -> List[str]:
        return [action.to_line() for action in self.actions]

    def to_text(self) -> str:
        """Serialize to the staged file format, one command per line."""
        lines = self.to_lines()
        return "\n".join(lines) + "\n" if lines else ""


class DraftScript(BaseModel):
    """Unvalidated script text, whether compiled, generated or user-supplied."""

    text: str = Field("", description="Script text")

    @classmethod
    def from_script(cls, script: Script) -> "DraftScript":
        return cls(text=script.to_text())

    @classmethod
    def from_lines(cls, lines: List[str]) -> "DraftScript":
        return cls(text="\n".join(lines))

    @property
    def lines(self) -> List[str]:
        return split_lines(self.text)


class AcceptedScript(BaseModel):
    """A script that passed validation. Only the script validator creates these."""

    model_config = ConfigDict(frozen=True)

    script: Script = Field(..., description="Validated actions")

    @property
    def actions(self) -> List[Any]:
        return self.script.actions

    def to_text(self) -> str:
        return self.script.to_text()


class ValidationReason(str, Enum):
    """Why a script line was rejected."""
    UNKNOWN_COMMAND = "unknown_command"
    WRONG_ARITY = "wrong_arity"
    MALFORMED_SELECTOR = "malformed_selector"


class ScriptValidationError(BaseModel):
    """A line-level grammar violation."""

    line: int = Field(..., ge=1, description="1-based line number")
    reason: ValidationReason = Field(..., description="Violation kind")
    text: str = Field("", description="Offending line")
    message: str = Field("", description="Human-readable explanation")


class ExitReason(str, Enum):
    """Terminal states of a script execution."""
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    LAUNCH_FAILED = "launch_failed"


class ExecutionResult(BaseModel):
    """Outcome of one automation runner invocation."""

    success: bool = Field(..., description="Whether the runner completed with exit code 0")
    stdout: str = Field("", description="Captured standard output")
    stderr: str = Field("", description="Captured standard error")
    exit_reason: ExitReason = Field(..., description="How the execution ended")
    return_code: Optional[int] = Field(None, description="Runner exit code, if it exited")
    duration_seconds: float = Field(0.0, description="Wall-clock duration")
    session_id: str = Field("default", description="Browser session the script ran against")
