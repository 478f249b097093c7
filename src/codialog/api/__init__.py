"""HTTP API for Codialog."""
