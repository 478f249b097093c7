"""Tests for the Heuristic Compiler."""

import pytest
from hypothesis import given, settings, strategies as st

from codialog.browser.forms import FormModelBuilder
from codialog.browser.heuristics import HeuristicCompiler, create_heuristic_compiler
from codialog.core.models import Click, SEMANTIC_FIELDS, Type, Upload, UserProfile
from codialog.core.validator import ScriptValidator


def compile_markup(markup, **profile_values):
    elements = FormModelBuilder().build(markup)
    return HeuristicCompiler().compile(elements, UserProfile(**profile_values))


class TestHeuristicCompiler:
    """Test cases for HeuristicCompiler."""

    def test_minimal_form_script(self):
        result = compile_markup(
            '<input id="email" type="email"><button id="submit" type="submit">Send</button>',
            email="a@b.com",
        )

        assert result.script.to_text() == 'type "#email" "a@b.com"\nclick "#submit"\n'
        assert result.coverage_ratio == 1.0
        assert result.has_submit
        assert result.unmapped_fields == []

    def test_compilation_unpacks_into_script_and_coverage(self):
        script, coverage = compile_markup('<input id="email">', email="a@b.com")

        assert len(script) == 1
        assert coverage == 1.0

    def test_fields_follow_priority_not_document_order(self):
        result = compile_markup(
            '<input id="email" type="email"><input id="fullname"><input id="phone" type="tel">',
            email="ada@example.com",
            fullname="Ada Lovelace",
            phone="555-0100",
        )

        assert [a.selector for a in result.script.actions] == ["#fullname", "#email", "#phone"]

    def test_email_and_fullname_profile(self):
        result = compile_markup(
            '<input id="fullname"><input id="email" type="email"><input id="phone" type="tel">'
            '<button type="submit" id="submit">Apply</button>',
            email="ada@example.com",
            fullname="Ada Lovelace",
        )

        assert result.script.actions == [
            Type(selector="#fullname", value="Ada Lovelace"),
            Type(selector="#email", value="ada@example.com"),
            Click(selector="#submit"),
        ]

    def test_login_flow_with_trigger(self):
        result = compile_markup(
            '<button id="login-btn">Log in</button>'
            '<input id="username"><input id="password" type="password">'
            '<button id="login-submit">Continue</button>',
            username="ada",
            password="s3cret",
        )

        assert result.script.actions == [
            Click(selector="#login-btn"),
            Type(selector="#username", value="ada"),
            Type(selector="#password", value="s3cret"),
            Click(selector="#login-submit"),
        ]
        assert result.coverage_ratio == 1.0
        # The login submit is not the form submit
        assert not result.has_submit

    def test_login_trigger_uses_default_selectors(self):
        result = compile_markup('<button id="signin">Sign in</button>', username="ada", password="pw")

        assert result.script.actions[1] == Type(selector="#username", value="ada")
        assert result.script.actions[2] == Type(selector="#password", value="pw")

    def test_login_trigger_skipped_without_credentials(self):
        result = compile_markup('<button id="login-btn">Log in</button>', username="ada")

        assert result.script.is_empty

    def test_inline_login_form_submits_after_credentials(self):
        result = compile_markup(
            '<input id="username"><input id="password" type="password">'
            '<button id="login" type="submit">Log in</button>',
            username="ada",
            password="pw",
        )

        assert result.script.to_lines() == [
            'type "#username" "ada"',
            'type "#password" "pw"',
            'click "#login"',
        ]
        assert result.coverage_ratio == 1.0

    def test_submit_typed_login_button_before_credentials_is_a_trigger(self):
        result = compile_markup(
            '<button id="login" type="submit">Log in</button>'
            '<input id="username"><input id="password" type="password">',
            username="ada",
            password="pw",
        )

        assert result.script.to_lines() == [
            'click "#login"',
            'type "#username" "ada"',
            'type "#password" "pw"',
        ]

    def test_inline_login_button_not_clicked_without_credentials(self):
        result = compile_markup(
            '<input id="username"><input id="password" type="password">'
            '<button id="login" type="submit">Log in</button><input id="email">',
            email="a@b.com",
        )

        assert result.script.to_lines() == ['type "#email" "a@b.com"']

    def test_inline_credentials_without_trigger(self):
        result = compile_markup(
            '<input id="username"><input type="password" id="password"><button type="submit" id="register">Go</button>',
            username="ada",
            password="pw",
        )

        assert result.script.to_lines() == [
            'type "#username" "ada"',
            'type "#password" "pw"',
            'click "#register"',
        ]

    def test_classified_file_inputs_get_uploads(self):
        result = compile_markup(
            '<input type="file" id="resume"><input type="file" id="cover-letter-file">',
            cv_path="/home/ada/cv.pdf",
            cover_letter_path="/home/ada/letter.pdf",
        )

        assert result.script.actions == [
            Upload(selector="#resume", path="/home/ada/cv.pdf"),
            Upload(selector="#cover-letter-file", path="/home/ada/letter.pdf"),
        ]

    def test_unclassified_file_input_gets_no_upload(self):
        result = compile_markup('<input type="file" id="attachment">', cv_path="/home/ada/cv.pdf")

        assert result.script.is_empty
        assert result.unmapped_fields == ["cv_path"]
        assert result.coverage_ratio == 0.0

    def test_consent_checkboxes_clicked_before_submit(self):
        result = compile_markup(
            '<button type="submit" id="send">Send</button>'
            '<input type="checkbox" id="terms"><input id="email">',
            email="a@b.com",
        )

        assert result.script.to_lines() == [
            'type "#email" "a@b.com"',
            'click "#terms"',
            'click "#send"',
        ]

    def test_apply_button_counts_as_submit(self):
        result = compile_markup('<input id="email"><button>Apply now</button>', email="a@b.com")

        assert result.has_submit
        assert result.script.actions[-1] == Click(selector="button")

    def test_untyped_button_without_submit_text_is_not_clicked(self):
        result = compile_markup('<input id="email"><button id="next">Next</button>', email="a@b.com")

        assert not result.has_submit
        assert result.script.to_lines() == ['type "#email" "a@b.com"']

    def test_partial_coverage(self):
        result = compile_markup(
            '<input id="email"><button type="submit">Go</button>',
            email="a@b.com",
            linkedin="https://linkedin.com/in/ada",
        )

        assert result.coverage_ratio == 0.5
        assert result.mapped_fields == ["email"]
        assert result.unmapped_fields == ["linkedin"]

    def test_empty_profile_has_full_coverage(self):
        result = compile_markup('<input id="email">')

        assert result.coverage_ratio == 1.0
        assert result.script.is_empty

    def test_no_elements(self):
        result = HeuristicCompiler().compile([], UserProfile(email="a@b.com"))

        assert result.script.is_empty
        assert result.coverage_ratio == 0.0
        assert not result.has_submit

    def test_element_used_once(self):
        result = compile_markup('<input id="name">', fullname="Ada", first_name="Ada")

        assert len(result.script) == 1

    def test_values_are_escaped(self):
        result = compile_markup(
            '<textarea id="cover-letter"></textarea>',
            cover_letter='I said "hi"\nSecond line',
        )

        assert result.script.to_text() == 'type "#cover-letter" "I said \\"hi\\"\\nSecond line"\n'

    def test_factory(self):
        assert isinstance(create_heuristic_compiler(), HeuristicCompiler)


APPLICATION_FORM = (
    '<button id="login">Log in</button>'
    '<input id="username"><input id="password" type="password">'
    '<input id="first-name"><input id="last-name"><input id="email" type="email">'
    '<input id="phone" type="tel"><input id="linkedin"><textarea id="cover-letter"></textarea>'
    '<input type="file" id="resume"><input type="checkbox" id="privacy">'
    '<button type="submit" id="submit">Submit</button>'
)

profile_strategy = st.fixed_dictionaries(
    {},
    optional={
        name: st.text(min_size=1, max_size=30)
        for name in SEMANTIC_FIELDS
    },
)


@pytest.mark.property
class TestHeuristicCompilerProperties:
    """Property-based tests for deterministic compilation."""

    @given(values=profile_strategy)
    @settings(max_examples=50, deadline=None)
    def test_compilation_is_deterministic(self, values):
        elements = FormModelBuilder().build(APPLICATION_FORM)
        profile = UserProfile(**values)

        first = HeuristicCompiler().compile(elements, profile)
        second = HeuristicCompiler().compile(elements, profile)

        assert first.script == second.script
        assert first.coverage_ratio == second.coverage_ratio

    @given(values=profile_strategy)
    @settings(max_examples=50, deadline=None)
    def test_compiled_script_always_validates(self, values):
        elements = FormModelBuilder().build(APPLICATION_FORM)
        result = HeuristicCompiler().compile(elements, UserProfile(**values))

        outcome = ScriptValidator().validate(result.script.to_text())

        assert outcome.is_valid
        assert outcome.accepted.script == result.script
        assert 0.0 <= result.coverage_ratio <= 1.0
        assert result.script.actions[-1] == Click(selector="#submit")
