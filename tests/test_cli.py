"""Tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from codialog import __version__
from codialog.cli import app


runner = CliRunner()


@pytest.fixture
def profile_file(tmp_path):
    path = tmp_path / "profile.json"
    path.write_text(json.dumps({"email": "ada@example.com", "salary": 90000}), encoding="utf-8")
    return path


class TestCLI:
    """Test cases for the typer application."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_validate_accepts_valid_script(self, tmp_path):
        script = tmp_path / "apply.tag"
        script.write_text('// apply\nclick "#apply"\n', encoding="utf-8")

        result = runner.invoke(app, ["validate", str(script)])

        assert result.exit_code == 0
        assert "Script is valid" in result.output

    def test_validate_rejects_invalid_script(self, tmp_path):
        script = tmp_path / "broken.tag"
        script.write_text('click "#apply"\nscroll "#down"\n', encoding="utf-8")

        result = runner.invoke(app, ["validate", str(script)])

        assert result.exit_code == 1

    def test_compile_without_fallback(self, tmp_path, profile_file):
        markup = tmp_path / "form.html"
        markup.write_text('<input id="email"><button type="submit" id="go">Go</button>', encoding="utf-8")
        output = tmp_path / "out.tag"

        result = runner.invoke(app, ["compile", str(markup), str(profile_file), "--no-fallback", "-o", str(output)])

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8") == 'type "#email" "ada@example.com"\nclick "#go"\n'

    def test_compile_empty_form_fails(self, tmp_path, profile_file):
        markup = tmp_path / "empty.html"
        markup.write_text("<p>nothing to fill</p>", encoding="utf-8")

        result = runner.invoke(app, ["compile", str(markup), str(profile_file), "--no-fallback"])

        assert result.exit_code == 1

    def test_template(self, profile_file):
        result = runner.invoke(app, ["template", "registration", str(profile_file)])

        assert result.exit_code == 0
        assert 'type "#email" "ada@example.com"' in result.output

    def test_unknown_template(self, profile_file):
        result = runner.invoke(app, ["template", "nope", str(profile_file)])

        assert result.exit_code == 2
