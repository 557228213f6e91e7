"""HTTP API for managing hosted projects."""
