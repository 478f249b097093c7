"""Tests for the compile-validate-execute pipeline."""

import pytest
from unittest.mock import AsyncMock

from codialog.core.fallback import FallbackGenerator
from codialog.core.models import AcceptedScript, ExecutionResult, ExitReason, UserProfile
from codialog.core.pipeline import (
    CompilationStatus,
    FormScriptPipeline,
    ScriptSource,
    create_pipeline,
)


class MockLLMResponse:
    """Mock LLM response for testing."""
    def __init__(self, content: str):
        self.content = content


SIMPLE_FORM = '<input id="email" type="email"><button type="submit" id="submit">Send</button>'


class TestFormScriptPipeline:
    """Test cases for FormScriptPipeline."""

    @pytest.fixture
    def mock_model(self):
        return AsyncMock()

    @pytest.fixture
    def pipeline(self, mock_model):
        return FormScriptPipeline(fallback=FallbackGenerator(model=mock_model, threshold=0.5))

    @pytest.mark.asyncio
    async def test_full_coverage_skips_fallback(self, pipeline, mock_model):
        result = await pipeline.compile(SIMPLE_FORM, UserProfile(email="a@b.com"))

        assert result.status == CompilationStatus.ACCEPTED
        assert result.source == ScriptSource.HEURISTIC
        assert isinstance(result.script, AcceptedScript)
        assert result.script_text == 'type "#email" "a@b.com"\nclick "#submit"\n'
        mock_model.ainvoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_low_coverage_uses_valid_fallback(self, pipeline, mock_model):
        mock_model.ainvoke.return_value = MockLLMResponse(
            'type "#email" "a@b.com"\ntype "#phone-number" "555"\nclick "#submit"'
        )

        result = await pipeline.compile(
            SIMPLE_FORM,
            UserProfile(email="a@b.com", phone="555", linkedin="https://linkedin.com/in/a")
        )

        assert result.status == CompilationStatus.ACCEPTED
        assert result.source == ScriptSource.FALLBACK
        assert len(result.script.actions) == 3
        assert result.coverage_ratio == pytest.approx(1 / 3)
        mock_model.ainvoke.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalid_fallback_degrades_to_heuristic(self, pipeline, mock_model):
        mock_model.ainvoke.return_value = MockLLMResponse('click ""\ntype "#email"')

        result = await pipeline.compile(SIMPLE_FORM, UserProfile(email="a@b.com", phone="555", github="ada"))

        assert result.status == CompilationStatus.ACCEPTED
        assert result.source == ScriptSource.HEURISTIC
        assert result.script_text == 'type "#email" "a@b.com"\nclick "#submit"\n'
        assert result.fallback_error == "Generated script failed validation"
        assert len(result.fallback_errors) == 2

    @pytest.mark.asyncio
    async def test_unavailable_fallback_degrades_to_heuristic(self, pipeline, mock_model):
        mock_model.ainvoke.side_effect = TimeoutError("request timed out")

        result = await pipeline.compile(SIMPLE_FORM, UserProfile(email="a@b.com", phone="555", github="ada"))

        assert result.source == ScriptSource.HEURISTIC
        assert result.status == CompilationStatus.ACCEPTED
        assert result.fallback_error.startswith("service_unavailable")

    @pytest.mark.asyncio
    async def test_fallback_can_be_disabled(self, pipeline, mock_model):
        result = await pipeline.compile(
            SIMPLE_FORM,
            UserProfile(email="a@b.com", phone="555"),
            use_fallback=False
        )

        assert result.source == ScriptSource.HEURISTIC
        mock_model.ainvoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_to_do_is_empty(self):
        pipeline = FormScriptPipeline()

        result = await pipeline.compile("<p>No form here</p>", UserProfile(email="a@b.com"))

        assert result.status == CompilationStatus.EMPTY
        assert result.script is None
        assert result.script_text == ""
        assert result.unmapped_fields == ["email"]

    @pytest.mark.asyncio
    async def test_empty_fallback_result_leads_to_empty(self, pipeline, mock_model):
        mock_model.ainvoke.return_value = MockLLMResponse("Sorry, no form found.")

        result = await pipeline.compile("<p>No form here</p>", UserProfile(email="a@b.com"))

        assert result.status == CompilationStatus.EMPTY
        assert result.fallback_error.startswith("empty_result")

    @pytest.mark.asyncio
    async def test_to_dict(self, pipeline):
        result = await pipeline.compile(SIMPLE_FORM, UserProfile(email="a@b.com"))

        data = result.to_dict()

        assert data["status"] == "accepted"
        assert data["source"] == "heuristic"
        assert data["coverage_ratio"] == 1.0
        assert data["errors"] == []

    @pytest.mark.asyncio
    async def test_execute_delegates_to_supervisor(self, pipeline):
        accepted = pipeline.validate('click "#submit"').accepted
        pipeline.supervisor.execute = AsyncMock(return_value=ExecutionResult(
            success=True,
            exit_reason=ExitReason.COMPLETED,
            return_code=0,
            session_id="s1",
        ))

        result = await pipeline.execute(accepted, timeout=10, session_id="s1")

        assert result.success
        pipeline.supervisor.execute.assert_awaited_once_with(accepted, timeout=10, session_id="s1", wait=True)

    def test_analyze(self, pipeline):
        assert [e.selector for e in pipeline.analyze(SIMPLE_FORM)] == ["#email", "#submit"]

    def test_create_pipeline(self):
        pipeline = create_pipeline(model=AsyncMock(), runner_command="my-runner --flag")

        assert pipeline.fallback.available
        assert pipeline.supervisor.runner_command == ["my-runner", "--flag"]
