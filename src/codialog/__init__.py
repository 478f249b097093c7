"""
Codialog: automated web form filling for job applications.

This package compiles a page's form structure and a user's profile into a script
of primitive UI actions, validates it against a strict command grammar, and runs
it in a real browser through an external automation runner.
"""

__version__ = "0.1.0"
__author__ = "Codialog Team"

from codialog.core.models import (
    AcceptedScript,
    DraftScript,
    ExecutionResult,
    FormElement,
    Script,
    UserProfile,
)
from codialog.core.pipeline import CompilationResult, FormScriptPipeline, create_pipeline
from codialog.core.validator import ScriptValidator
from codialog.runner.supervisor import ExecutionSupervisor

__all__ = [
    "AcceptedScript",
    "DraftScript",
    "ExecutionResult",
    "FormElement",
    "Script",
    "UserProfile",
    "CompilationResult",
    "FormScriptPipeline",
    "create_pipeline",
    "ScriptValidator",
    "ExecutionSupervisor",
]
