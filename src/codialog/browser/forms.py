"""Form model builder: turns page markup into typed form elements."""

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from codialog.core.models import ElementKind, FormElement
from codialog.utils.logging import get_logger

logger = get_logger(__name__)

TEXTUAL_KINDS = frozenset({ElementKind.TEXT_INPUT, ElementKind.TEXT_AREA})
BUTTON_KINDS = frozenset({ElementKind.BUTTON})

INPUT_TYPE_KINDS = {
    "text": ElementKind.TEXT_INPUT,
    "search": ElementKind.TEXT_INPUT,
    "url": ElementKind.TEXT_INPUT,
    "number": ElementKind.TEXT_INPUT,
    "date": ElementKind.TEXT_INPUT,
    "password": ElementKind.PASSWORD_INPUT,
    "email": ElementKind.EMAIL_INPUT,
    "tel": ElementKind.TEL_INPUT,
    "file": ElementKind.FILE_INPUT,
    "checkbox": ElementKind.CHECKBOX,
    "submit": ElementKind.BUTTON,
    "button": ElementKind.BUTTON,
    "image": ElementKind.BUTTON,
}

# Hints used when no keyword matched
DEFAULT_TYPE_ROLES = {
    "password": "password",
    "email": "email",
    "tel": "phone",
    "submit": "submit",
}


@dataclass(frozen=True)
class RoleRule:
    """Keyword set mapped to a semantic role, optionally restricted to element kinds."""
    role: str
    keywords: Tuple[str, ...]
    kinds: Optional[FrozenSet[ElementKind]] = None

    def matches(self, haystack: str, kind: ElementKind) -> bool:
        if self.kinds is not None and kind not in self.kinds:
            return False
        return any(keyword in haystack for keyword in self.keywords)


# Evaluated top to bottom; the first matching rule wins.
ROLE_RULES: Tuple[RoleRule, ...] = (
    RoleRule("login_submit", ("login-submit", "login_submit", "loginsubmit",
                              "signin-submit", "signin_submit", "sign-in-submit"), BUTTON_KINDS),
    RoleRule("login", ("login", "log-in", "log_in", "signin", "sign-in", "sign_in"), BUTTON_KINDS),
    RoleRule("consent", ("consent", "gdpr", "terms", "privacy", "agree"),
             frozenset({ElementKind.CHECKBOX})),
    RoleRule("cover_letter", ("cover", "letter", "motivation"),
             TEXTUAL_KINDS | {ElementKind.FILE_INPUT}),
    RoleRule("cv", ("cv", "resume", "résumé"), frozenset({ElementKind.FILE_INPUT})),
    RoleRule("portfolio", ("portfolio", "website", "personal-site"),
             TEXTUAL_KINDS | {ElementKind.FILE_INPUT}),
    RoleRule("linkedin", ("linkedin",), TEXTUAL_KINDS),
    RoleRule("github", ("github",), TEXTUAL_KINDS),
    RoleRule("email", ("email", "e-mail", "mail"),
             TEXTUAL_KINDS | {ElementKind.EMAIL_INPUT}),
    RoleRule("username", ("username", "user-name", "user_name", "userid", "user"),
             TEXTUAL_KINDS | {ElementKind.EMAIL_INPUT}),
    RoleRule("password", ("password", "passwd", "pass"),
             TEXTUAL_KINDS | {ElementKind.PASSWORD_INPUT}),
    RoleRule("company", ("company", "employer", "organisation", "organization"), TEXTUAL_KINDS),
    RoleRule("first_name", ("firstname", "first-name", "first_name", "fname", "given"), TEXTUAL_KINDS),
    RoleRule("last_name", ("lastname", "last-name", "last_name", "lname", "surname", "family"), TEXTUAL_KINDS),
    RoleRule("fullname", ("fullname", "full-name", "full_name", "name"), TEXTUAL_KINDS),
    RoleRule("phone", ("phone", "tel", "mobile"), TEXTUAL_KINDS | {ElementKind.TEL_INPUT}),
    RoleRule("salary", ("salary", "compensation", "wage"), TEXTUAL_KINDS),
    RoleRule("apply", ("apply",), BUTTON_KINDS),
    RoleRule("submit", ("submit", "send"), BUTTON_KINDS),
)

COMPLEXITY_PATTERNS = (
    re.compile(r'class="complex'),
    re.compile(r"data-step="),
    re.compile(r"multi-step"),
    re.compile(r"javascript:"),
    re.compile(r"onclick="),
    re.compile(r"data-validation="),
)


def infer_role(haystack: str, kind: ElementKind) -> Optional[str]:
    """Return the role of the first rule matching the lower-cased haystack."""
    for rule in ROLE_RULES:
        if rule.matches(haystack, kind):
            return rule.role
    return None


def count_complexity_indicators(markup: str) -> int:
    """Count markers of multi-step or script-driven forms in raw markup."""
    if not markup:
        return 0
    count = sum(1 for pattern in COMPLEXITY_PATTERNS if pattern.search(markup))
    if markup.count("<input") > 5:
        count += 1
    return count


class FormModelBuilder:
    """
    Best-effort scanner for the interactive nodes of a form.

    Builds a fresh list of FormElement values from a markup snapshot, in document
    order. Unknown or malformed markup never raises; it simply yields fewer elements.
    """

    def __init__(self, parser: str = "html.parser"):
        self.parser = parser
        self.logger = logger.bind(component="form_model_builder")

    def build(self, markup: str) -> List[FormElement]:
        """
        Scan markup for inputs, textareas and buttons.

        Args:
            markup: Raw page or form markup

        Returns:
            Form elements in document order
        """
        if not markup:
            return []

        try:
            soup = BeautifulSoup(markup, self.parser)
            nodes = soup.find_all(["input", "textarea", "button"])
        except Exception as e:
            self.logger.warning(
                "Markup could not be parsed",
                error=str(e),
                error_type=type(e).__name__
            )
            return []

        elements: List[FormElement] = []
        for node in nodes:
            element = self._to_element(node)
            if element is not None:
                elements.append(element)

        self.logger.debug(
            "Form model built",
            markup_length=len(markup),
            elements_found=len(elements)
        )
        return elements

    def _to_element(self, node: Tag) -> Optional[FormElement]:
        tag = node.name
        input_type = _attr(node, "type").lower() or None

        if tag == "input":
            kind = INPUT_TYPE_KINDS.get(input_type or "text")
        elif tag == "textarea":
            kind = ElementKind.TEXT_AREA
        else:
            # Only an explicit type="submit" counts; untyped buttons rely on their text
            kind = ElementKind.BUTTON

        if kind is None:
            return None

        label = self._label(node, kind)
        return FormElement(
            selector=self._selector(node, tag),
            kind=kind,
            role_hint=self._role_hint(node, kind, input_type, label),
            input_type=input_type,
            label=label,
        )

    def _selector(self, node: Tag, tag: str) -> str:
        element_id = _attr(node, "id")
        if element_id:
            return f"#{element_id}"

        name = _attr(node, "name")
        if name:
            return f'{tag}[name="{name}"]'

        input_type = _attr(node, "type")
        if input_type:
            return f'{tag}[type="{input_type}"]'
        return tag

    def _role_hint(
        self,
        node: Tag,
        kind: ElementKind,
        input_type: Optional[str],
        label: Optional[str]
    ) -> Optional[str]:
        attributes = " ".join(
            _attr(node, key) for key in ("id", "name", "placeholder", "aria-label")
        ).lower()

        role = infer_role(attributes, kind)
        if role is None and kind == ElementKind.BUTTON and label:
            role = infer_role(label.lower(), kind)
        if role is None and input_type:
            role = DEFAULT_TYPE_ROLES.get(input_type)
        return role

    def _label(self, node: Tag, kind: ElementKind) -> Optional[str]:
        text = _attr(node, "placeholder") or _attr(node, "aria-label")
        if not text and kind == ElementKind.BUTTON:
            text = node.get_text(" ", strip=True) if node.name == "button" else _attr(node, "value")
        return text[:80] if text else None


def _attr(node: Tag, key: str) -> str:
    value = node.get(key)
    if isinstance(value, list):
        value = " ".join(value)
    return (value or "").strip()


def build_form_model(markup: str) -> List[FormElement]:
    """Convenience wrapper around FormModelBuilder.build."""
    return FormModelBuilder().build(markup)


def create_form_model_builder(parser: str = "html.parser") -> FormModelBuilder:
    return FormModelBuilder(parser)
