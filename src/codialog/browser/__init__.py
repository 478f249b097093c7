"""Form analysis and script compilation components."""

from codialog.browser.forms import FormModelBuilder, build_form_model, create_form_model_builder
from codialog.browser.heuristics import HeuristicCompiler, HeuristicCompilation, create_heuristic_compiler
from codialog.browser.templates import TEMPLATES, render_template

__all__ = [
    "FormModelBuilder", "build_form_model", "create_form_model_builder",
    "HeuristicCompiler", "HeuristicCompilation", "create_heuristic_compiler",
    "TEMPLATES", "render_template",
]
