"""Tests for the ready-made script templates."""

import pytest

from codialog.browser.templates import TEMPLATES, render_template
from codialog.core.models import Type, Upload, UserProfile
from codialog.core.validator import ScriptValidator


@pytest.fixture
def full_profile():
    return UserProfile(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="555-0100",
        username="ada",
        password="s3cret",
        cv_path="/home/ada/cv.pdf",
    )


class TestTemplates:
    """Test cases for template rendering."""

    @pytest.mark.parametrize("name", sorted(TEMPLATES))
    def test_every_template_validates(self, name, full_profile):
        script = render_template(name, full_profile)

        outcome = ScriptValidator().validate(script.to_text())

        assert outcome.is_valid
        assert outcome.accepted.script == script

    def test_job_application_order(self, full_profile):
        lines = render_template("job_application", full_profile).to_lines()

        assert lines[0] == 'click "#accept-cookies"'
        assert 'type "#email" "ada@example.com"' in lines
        assert 'upload "#resume" "/home/ada/cv.pdf"' in lines
        assert lines[-1] == 'click "#submit-application"'

    def test_empty_fields_are_skipped(self):
        script = render_template("job_application", UserProfile(email="ada@example.com"))

        typed = [a for a in script.actions if isinstance(a, Type)]
        assert typed == [Type(selector="#email", value="ada@example.com")]
        assert not any(isinstance(a, Upload) for a in script.actions)

    def test_registration_confirms_password(self, full_profile):
        script = render_template("registration", full_profile)

        assert Type(selector="#password", value="s3cret") in script.actions
        assert Type(selector="#confirm-password", value="s3cret") in script.actions

    def test_unknown_template(self, full_profile):
        with pytest.raises(KeyError) as exc_info:
            render_template("does_not_exist", full_profile)

        assert "job_application" in str(exc_info.value)
