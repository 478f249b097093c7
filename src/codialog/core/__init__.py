"""Core models, grammar, validation and pipeline."""
