"""Script validation against the four-command grammar."""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from codialog.core.grammar import COMMAND_ARITY, is_ignorable, lex_line, tokenize_line
from codialog.core.models import (
    AcceptedScript,
    DraftScript,
    Script,
    ScriptValidationError,
    ValidationReason,
    action_from_arguments,
)
from codialog.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ValidationOutcome:
    """Either an accepted script or the complete list of line errors."""
    accepted: Optional[AcceptedScript] = None
    errors: List[ScriptValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.accepted is not None and not self.errors


def is_valid_selector(selector: str) -> bool:
    """Selectors must be non-empty and start with '#', '.' or an alphanumeric tag character."""
    if not selector:
        return False
    first = selector[0]
    return first in "#." or first.isalnum()


class ScriptValidator:
    """
    Exhaustive validator for draft scripts.

    Every line is checked and every error is reported, so callers get a complete
    diagnostic. A script with no errors is promoted to an AcceptedScript.
    """

    def __init__(self):
        self.logger = logger.bind(component="script_validator")

    def check_line(self, line_number: int, line: str) -> Optional[ScriptValidationError]:
        """Return the first grammar violation on a line, if any."""
        if is_ignorable(line):
            return None

        tokens = lex_line(line)
        verb, arguments = tokens[0], tokens[1:]

        if verb.quoted or verb.text not in COMMAND_ARITY:
            return self._error(line_number, line, ValidationReason.UNKNOWN_COMMAND, f"Unknown command '{verb.text}'")

        expected = COMMAND_ARITY[verb.text]
        if len(arguments) != expected:
            return self._error(
                line_number,
                line,
                ValidationReason.WRONG_ARITY,
                f"Command '{verb.text}' takes {expected} argument(s), got {len(arguments)}"
            )

        selector = arguments[0]
        if not selector.quoted or not is_valid_selector(selector.text):
            return self._error(
                line_number,
                line,
                ValidationReason.MALFORMED_SELECTOR,
                f"Malformed selector '{selector.text}'" if selector.quoted
                else f"Selector {selector.text} must be double-quoted"
            )

        # Values and paths count only when quoted
        if not all(argument.quoted for argument in arguments[1:]):
            return self._error(
                line_number,
                line,
                ValidationReason.WRONG_ARITY,
                f"Command '{verb.text}' takes {expected} double-quoted argument(s)"
            )

        return None

    @staticmethod
    def _error(line_number: int, line: str, reason: ValidationReason, message: str) -> ScriptValidationError:
        return ScriptValidationError(line=line_number, reason=reason, text=line.strip(), message=message)

    def validate(self, draft: Union[DraftScript, str]) -> ValidationOutcome:
        """
        Validate a draft script.

        Args:
            draft: Draft script or raw script text

        Returns:
            Outcome holding the accepted script, or every error found
        """
        if isinstance(draft, str):
            draft = DraftScript(text=draft)

        errors: List[ScriptValidationError] = []
        actions = []

        for line_number, line in enumerate(draft.lines, start=1):
            error = self.check_line(line_number, line)
            if error is not None:
                errors.append(error)
                continue
            if is_ignorable(line):
                continue
            tokens = tokenize_line(line)
            actions.append(action_from_arguments(tokens[0], tokens[1:]))

        if errors:
            self.logger.warning(
                "Script rejected",
                error_count=len(errors),
                first_error_line=errors[0].line,
                reasons=sorted({e.reason.value for e in errors})
            )
            return ValidationOutcome(errors=errors)

        self.logger.debug("Script accepted", actions=len(actions))
        return ValidationOutcome(accepted=AcceptedScript(script=Script(actions=actions)))


def parse_script(text: str) -> Script:
    """
    Parse script text into actions.

    Raises:
        ValueError: If the text does not validate; the message lists every error
    """
    outcome = ScriptValidator().validate(text)
    if not outcome.is_valid:
        details = "; ".join(f"line {e.line}: {e.message}" for e in outcome.errors)
        raise ValueError(f"Invalid script: {details}")
    return outcome.accepted.script


def create_script_validator() -> ScriptValidator:
    """Factory function to create a script validator."""
    return ScriptValidator()
