"""HTTP API of the media store."""
