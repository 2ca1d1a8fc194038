"""Read-only Flask web surface."""
