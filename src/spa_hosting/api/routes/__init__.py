"""Route handlers for the API."""

from spa_hosting.api.routes import health, projects, statistics

__all__ = [
    "health",
    "projects",
    "statistics",
]
