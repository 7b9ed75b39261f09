"""Public read-only routes."""
