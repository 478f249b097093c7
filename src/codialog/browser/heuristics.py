"""Heuristic compiler: maps form elements and a user profile to an action script."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from codialog.core.models import (
    Click,
    ElementKind,
    FormElement,
    Script,
    Type,
    Upload,
    UserProfile,
)
from codialog.utils.logging import get_logger, log_profile_summary

logger = get_logger(__name__)

TYPABLE_KINDS = frozenset({
    ElementKind.TEXT_INPUT,
    ElementKind.EMAIL_INPUT,
    ElementKind.TEL_INPUT,
    ElementKind.TEXT_AREA,
})

# Fill order for text fields after login
FIELD_PRIORITY: Tuple[str, ...] = (
    "fullname",
    "first_name",
    "last_name",
    "email",
    "phone",
    "linkedin",
    "github",
    "portfolio",
    "cover_letter",
    "salary",
)

FALLBACK_SELECTORS: Dict[str, Tuple[str, ...]] = {
    "fullname": ("#fullname", "#full-name", "#name", 'input[name="fullname"]', 'input[name="name"]'),
    "first_name": ("#first-name", "#firstname", "#first_name", 'input[name="first_name"]', 'input[name="firstName"]'),
    "last_name": ("#last-name", "#lastname", "#last_name", 'input[name="last_name"]', 'input[name="lastName"]'),
    "email": ("#email", 'input[name="email"]', 'input[type="email"]'),
    "phone": ("#phone", "#telephone", 'input[name="phone"]', 'input[type="tel"]'),
    "linkedin": ("#linkedin", 'input[name="linkedin"]'),
    "github": ("#github", 'input[name="github"]'),
    "portfolio": ("#portfolio", "#website", 'input[name="portfolio"]'),
    "cover_letter": ("#cover-letter", "#cover_letter", 'textarea[name="cover_letter"]'),
    "salary": ("#salary", "#expected-salary", 'input[name="salary"]'),
}

FILE_ROLE_FIELDS: Dict[str, str] = {
    "cv": "cv_path",
    "cover_letter": "cover_letter_path",
    "portfolio": "portfolio_path",
}

SUBMIT_ROLES = frozenset({"submit", "apply"})
LOGIN_ROLES = frozenset({"login", "login_submit"})

DEFAULT_USERNAME_SELECTOR = "#username"
DEFAULT_PASSWORD_SELECTOR = "#password"


@dataclass
class HeuristicCompilation:
    """Compiled script plus how much of the profile it covers."""
    script: Script
    coverage_ratio: float
    mapped_fields: List[str] = field(default_factory=list)
    unmapped_fields: List[str] = field(default_factory=list)
    has_submit: bool = False

    def __iter__(self):
        # Allows ``script, coverage = compiler.compile(...)``
        yield self.script
        yield self.coverage_ratio


class HeuristicCompiler:
    """
    Deterministic compiler from form elements to an ordered action script.

    The compiler walks a fixed sequence of stages:
    1. Login (trigger click, credentials, login submit)
    2. Text fields in a fixed priority order
    3. File uploads for classified file inputs
    4. Mandatory consent checkboxes
    5. A final submit click

    Ties are broken by document order, so identical input always yields an
    identical script. The compiler never raises; poor coverage is reported
    through ``coverage_ratio`` instead.
    """

    def __init__(self):
        self.logger = logger.bind(component="heuristic_compiler")

    def compile(self, elements: List[FormElement], profile: UserProfile) -> HeuristicCompilation:
        """
        Compile elements and profile into a draft action script.

        Args:
            elements: Form elements in document order
            profile: User profile values

        Returns:
            Compilation with the script and its coverage ratio
        """
        actions: List = []
        mapped: Set[str] = set()
        used: Set[str] = set()

        self._compile_login(elements, profile, actions, mapped, used)
        self._compile_fields(elements, profile, actions, mapped, used)
        self._compile_uploads(elements, profile, actions, mapped, used)
        self._compile_consents(elements, actions, used)
        has_submit = self._compile_submit(elements, actions, used)

        requested = profile.filled_fields()
        covered = [name for name in requested if name in mapped]
        coverage_ratio = len(covered) / len(requested) if requested else 1.0

        compilation = HeuristicCompilation(
            script=Script(actions=actions),
            coverage_ratio=coverage_ratio,
            mapped_fields=covered,
            unmapped_fields=[name for name in requested if name not in mapped],
            has_submit=has_submit,
        )

        self.logger.info(
            "Heuristic compilation completed",
            elements=len(elements),
            actions=len(actions),
            coverage_ratio=round(coverage_ratio, 3),
            unmapped_fields=compilation.unmapped_fields,
            has_submit=has_submit,
            **log_profile_summary(profile)
        )
        return compilation

    def _compile_login(self, elements, profile, actions, mapped, used) -> None:
        username_field = _first(
            elements,
            lambda e: e.role_hint == "username" and (e.kind in TYPABLE_KINDS)
        )
        password_field = _first(
            elements,
            lambda e: e.role_hint == "password"
            and e.kind in TYPABLE_KINDS | {ElementKind.PASSWORD_INPUT}
        )
        credentials = [e for e in (username_field, password_field) if e is not None]
        login_button = _first(elements, lambda e: e.role_hint == "login" and e.kind == ElementKind.BUTTON)

        # A submit-typed login button after the credentials sends them, it does not open the form
        if login_button is not None and login_button.is_submit_type and credentials and (
            _position(elements, login_button) > min(_position(elements, e) for e in credentials)
        ):
            trigger, login_submit = None, login_button
        else:
            trigger = login_button
            login_submit = _first(elements, lambda e: e.role_hint == "login_submit")

        if trigger is not None:
            if not (profile.has("username") and profile.has("password")):
                return
            actions.append(Click(selector=trigger.selector))
            used.add(trigger.selector)
            username_selector = username_field.selector if username_field else DEFAULT_USERNAME_SELECTOR
            password_selector = password_field.selector if password_field else DEFAULT_PASSWORD_SELECTOR
            actions.append(Type(selector=username_selector, value=profile.username))
            actions.append(Type(selector=password_selector, value=profile.password))
            used.update({username_selector, password_selector})
            mapped.update({"username", "password"})
        else:
            # Inline login or registration form without a separate trigger
            for name, element in (("username", username_field), ("password", password_field)):
                if element is not None and profile.has(name):
                    actions.append(Type(selector=element.selector, value=profile.get(name)))
                    used.add(element.selector)
                    mapped.add(name)
            if not mapped & {"username", "password"}:
                return

        if login_submit is not None:
            actions.append(Click(selector=login_submit.selector))
            used.add(login_submit.selector)

    def _compile_fields(self, elements, profile, actions, mapped, used) -> None:
        for name in FIELD_PRIORITY:
            if not profile.has(name):
                continue
            element = self._resolve_field(elements, name, used)
            if element is None:
                continue
            actions.append(Type(selector=element.selector, value=profile.get(name)))
            used.add(element.selector)
            mapped.add(name)

    def _resolve_field(
        self,
        elements: List[FormElement],
        name: str,
        used: Set[str]
    ) -> Optional[FormElement]:
        candidates = [e for e in elements if e.kind in TYPABLE_KINDS and e.selector not in used]
        by_role = _first(candidates, lambda e: e.role_hint == name)
        if by_role is not None:
            return by_role
        fallbacks = FALLBACK_SELECTORS.get(name, ())
        return _first(candidates, lambda e: e.selector in fallbacks)

    def _compile_uploads(self, elements, profile, actions, mapped, used) -> None:
        for element in elements:
            if element.kind != ElementKind.FILE_INPUT:
                continue
            path_field = FILE_ROLE_FIELDS.get(element.role_hint or "")
            if path_field is None or not profile.has(path_field):
                continue
            actions.append(Upload(selector=element.selector, path=profile.get(path_field)))
            used.add(element.selector)
            mapped.add(path_field)

    def _compile_consents(self, elements, actions, used) -> None:
        for element in elements:
            if element.kind == ElementKind.CHECKBOX and element.role_hint == "consent":
                actions.append(Click(selector=element.selector))
                used.add(element.selector)

    def _compile_submit(self, elements, actions, used) -> bool:
        submit = _first(
            elements,
            lambda e: e.kind == ElementKind.BUTTON
            and e.selector not in used
            and e.role_hint not in LOGIN_ROLES
            and (e.role_hint in SUBMIT_ROLES or e.is_submit_type)
        )
        if submit is None:
            return False
        actions.append(Click(selector=submit.selector))
        used.add(submit.selector)
        return True


def _first(elements: Iterable[FormElement], predicate) -> Optional[FormElement]:
    for element in elements:
        if predicate(element):
            return element
    return None


def _position(elements: List[FormElement], element: FormElement) -> int:
    return next(index for index, candidate in enumerate(elements) if candidate is element)


def create_heuristic_compiler() -> HeuristicCompiler:
    """Factory function to create a heuristic compiler."""
    return HeuristicCompiler()
