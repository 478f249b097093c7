"""Command-line interface for Codialog."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from codialog.config import settings

app = typer.Typer(
    name="codialog",
    help="Codialog - compile web forms into automation scripts and run them",
    add_completion=False,
)
console = Console()


def _load_profile(path: Path):
    from codialog.core.models import UserProfile

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read profile {path}: {e}[/red]")
        raise typer.Exit(code=2)
    return UserProfile.model_validate(data)


def _print_errors(errors) -> None:
    table = Table(title="Script Validation Errors")
    table.add_column("Line", style="cyan", justify="right")
    table.add_column("Reason", style="red")
    table.add_column("Message")
    for error in errors:
        table.add_row(str(error.line), error.reason.value, error.message)
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option(settings.host, help="Host to bind to"),
    port: int = typer.Option(settings.port, help="Port to bind to"),
    reload: bool = typer.Option(settings.reload, help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    console.print(f"🚀 Starting Codialog on {host}:{port}")
    uvicorn.run(
        "codialog.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def config() -> None:
    """Show current configuration."""
    table = Table(title="Codialog Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    # Show non-sensitive settings
    table.add_row("Debug Mode", str(settings.debug))
    table.add_row("Log Level", settings.log_level)
    table.add_row("Reasoning Model", settings.reasoning_model)
    table.add_row("Fallback Model", settings.fallback_model)
    table.add_row("Fallback Threshold", str(settings.fallback_threshold))
    table.add_row("Runner Command", settings.runner_command)
    table.add_row("Browser Target", settings.browser_target)
    table.add_row("Execution Timeout", f"{settings.execution_timeout}s")
    table.add_row("Staging Directory", settings.staging_dir or "(system temp)")

    console.print(table)


@app.command(name="compile")
def compile_form(
    markup_file: Path = typer.Argument(..., exists=True, readable=True, help="Page markup file"),
    profile_file: Path = typer.Argument(..., exists=True, readable=True, help="User profile JSON file"),
    fallback: bool = typer.Option(True, "--fallback/--no-fallback", help="Allow the text-generation fallback"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the script to this file"),
) -> None:
    """Compile a form and a profile into a validated script."""
    from codialog.core.pipeline import CompilationStatus, create_pipeline

    profile = _load_profile(profile_file)
    markup = markup_file.read_text(encoding="utf-8", errors="replace")
    result = asyncio.run(create_pipeline().compile(markup, profile, use_fallback=fallback))

    console.print(
        f"Source: [cyan]{result.source.value}[/cyan]  "
        f"Coverage: [cyan]{result.coverage_ratio:.0%}[/cyan]"
    )
    if result.unmapped_fields:
        console.print(f"⚠️  Unmapped fields: {', '.join(result.unmapped_fields)}")
    if result.fallback_error:
        console.print(f"⚠️  Fallback not used: {result.fallback_error}")

    if result.status == CompilationStatus.EMPTY:
        console.print("[red]❌ No actions could be generated[/red]")
        raise typer.Exit(code=1)
    if result.status == CompilationStatus.INVALID:
        _print_errors(result.errors)
        raise typer.Exit(code=1)

    if output:
        output.write_text(result.script_text, encoding="utf-8")
        console.print(f"✅ Script written to {output}")
    else:
        console.print(result.script_text, markup=False, highlight=False)


@app.command()
def validate(
    script_file: Path = typer.Argument(..., exists=True, readable=True, help="Script file"),
) -> None:
    """Validate a script and list every error."""
    from codialog.core.validator import ScriptValidator

    outcome = ScriptValidator().validate(script_file.read_text(encoding="utf-8"))
    if outcome.is_valid:
        console.print(f"✅ Script is valid ({len(outcome.accepted.actions)} actions)")
        return
    _print_errors(outcome.errors)
    raise typer.Exit(code=1)


@app.command()
def run(
    script_file: Path = typer.Argument(..., exists=True, readable=True, help="Script file"),
    timeout: float = typer.Option(settings.execution_timeout, help="Timeout in seconds"),
    session: str = typer.Option("default", help="Browser session identifier"),
) -> None:
    """Validate a script and execute it with the automation runner."""
    from codialog.core.models import ExitReason
    from codialog.core.validator import ScriptValidator
    from codialog.runner.supervisor import ExecutionSupervisor

    outcome = ScriptValidator().validate(script_file.read_text(encoding="utf-8"))
    if not outcome.is_valid:
        _print_errors(outcome.errors)
        raise typer.Exit(code=1)

    result = asyncio.run(ExecutionSupervisor().execute(outcome.accepted, timeout=timeout, session_id=session))
    if result.stdout:
        console.print(result.stdout, markup=False, highlight=False)

    if result.exit_reason == ExitReason.LAUNCH_FAILED:
        console.print(f"[red]❌ Runner could not be started: {result.stderr}[/red]")
        raise typer.Exit(code=3)
    if result.exit_reason == ExitReason.TIMED_OUT:
        console.print(f"[red]⏱️  Script timed out after {timeout}s[/red]")
        raise typer.Exit(code=4)
    if not result.success:
        console.print(f"[red]❌ Script failed (exit code {result.return_code})[/red]")
        if result.stderr:
            console.print(result.stderr, markup=False, highlight=False)
        raise typer.Exit(code=1)
    console.print(f"✅ Script completed in {result.duration_seconds:.1f}s")


@app.command()
def template(
    name: str = typer.Argument(..., help="Template name"),
    profile_file: Path = typer.Argument(..., exists=True, readable=True, help="User profile JSON file"),
) -> None:
    """Render a ready-made script template."""
    from codialog.browser.templates import TEMPLATES, render_template

    if name not in TEMPLATES:
        console.print(f"[red]Unknown template '{name}'. Available: {', '.join(sorted(TEMPLATES))}[/red]")
        raise typer.Exit(code=2)
    script = render_template(name, _load_profile(profile_file))
    console.print(script.to_text(), markup=False, highlight=False)


@app.command()
def test_setup() -> None:
    """Test the setup and configuration."""
    from codialog.runner.supervisor import check_runner_installed

    console.print("🔍 Testing Codialog setup...")

    if check_runner_installed():
        console.print(f"✅ Automation runner found ({settings.runner_command})")
    else:
        console.print(f"❌ Automation runner not found ({settings.runner_command})")

    optional_keys = [
        ("Groq", settings.groq_api_key),
        ("OpenAI", settings.openai_api_key),
    ]

    for key_name, key in optional_keys:
        if key:
            console.print(f"✅ {key_name} API key configured")
        else:
            console.print(f"⚠️  {key_name} API key not configured (fallback generator disabled without one)")

    console.print("\n🎯 Setup test complete!")


@app.command()
def version() -> None:
    """Show version information."""
    from codialog import __version__
    console.print(f"Codialog v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
