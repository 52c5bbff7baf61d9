"""Chat request services."""
