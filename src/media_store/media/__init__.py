"""Identity, upload and search services."""
