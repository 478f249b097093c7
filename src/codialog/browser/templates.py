"""Ready-made scripts for common application and sign-up flows."""

from typing import Callable, Dict, List

from codialog.core.models import Click, Hover, Script, Type, Upload, UserProfile


def _type_if(profile: UserProfile, selector: str, field: str) -> List:
    value = profile.get(field)
    return [Type(selector=selector, value=value)] if value else []


def _upload_if(profile: UserProfile, selector: str, field: str) -> List:
    value = profile.get(field)
    return [Upload(selector=selector, path=value)] if value else []


def job_application_template(profile: UserProfile) -> Script:
    """Careers page: accept cookies, open the posting, fill the form and submit."""
    actions = [
        Click(selector="#accept-cookies"),
        Hover(selector="#careers-link"),
        Click(selector="#careers-link"),
        Click(selector="#apply-now"),
    ]
    actions += _type_if(profile, "#first-name", "first_name")
    actions += _type_if(profile, "#last-name", "last_name")
    actions += _type_if(profile, "#email", "email")
    actions += _type_if(profile, "#phone", "phone")
    actions += _upload_if(profile, "#resume", "cv_path")
    actions += [Click(selector="#gdpr-consent"), Click(selector="#submit-application")]
    return Script(actions=actions)


def registration_template(profile: UserProfile) -> Script:
    """Account registration with password confirmation and terms checkbox."""
    actions = [Click(selector="#register")]
    actions += _type_if(profile, "#username", "username")
    actions += _type_if(profile, "#email", "email")
    actions += _type_if(profile, "#password", "password")
    actions += _type_if(profile, "#confirm-password", "password")
    actions += [Click(selector="#terms-checkbox"), Click(selector="#create-account")]
    return Script(actions=actions)


def linkedin_apply_template(profile: UserProfile) -> Script:
    """LinkedIn Easy Apply after signing in."""
    actions = [Click(selector="#sign-in")]
    actions += _type_if(profile, "#username", "username")
    actions += _type_if(profile, "#password", "password")
    actions += [Click(selector="#sign-in-submit"), Click(selector=".jobs-apply-button")]
    actions += _upload_if(profile, "#resume-upload", "cv_path")
    actions += _type_if(profile, "#phone", "phone")
    actions += [Click(selector="#follow-company"), Click(selector="#submit-application")]
    return Script(actions=actions)


TEMPLATES: Dict[str, Callable[[UserProfile], Script]] = {
    "job_application": job_application_template,
    "registration": registration_template,
    "linkedin_apply": linkedin_apply_template,
}


def render_template(name: str, profile: UserProfile) -> Script:
    """
    Build a template script by name.

    Raises:
        KeyError: If no template has that name
    """
    try:
        builder = TEMPLATES[name]
    except KeyError:
        raise KeyError(f"Unknown template '{name}'. Available: {', '.join(sorted(TEMPLATES))}") from None
    return builder(profile)
