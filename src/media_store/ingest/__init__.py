"""Source acquisition."""
