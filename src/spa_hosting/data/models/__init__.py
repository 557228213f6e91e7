"""ORM models package for database tables.

This package provides SQLAlchemy ORM models representing database tables:
- SpaProject: One row per slug pointing at the currently served version
- SpaProjectVersion: Extracted versions retained on disk for a project
- SpaProjectPromotion: Append-only log of every promotion of a project

All models inherit from the shared Base declarative class defined in data.db.
"""

from spa_hosting.data.db import Base
from spa_hosting.data.models.project import SpaProject
from spa_hosting.data.models.project_promotion import SpaProjectPromotion
from spa_hosting.data.models.project_version import SpaProjectVersion

__all__ = ["Base", "SpaProject", "SpaProjectPromotion", "SpaProjectVersion"]
