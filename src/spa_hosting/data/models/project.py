"""ORM model representing a hosted single-page application."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spa_hosting.data.db import Base

if TYPE_CHECKING:
    from spa_hosting.data.models.project_promotion import SpaProjectPromotion
    from spa_hosting.data.models.project_version import SpaProjectVersion


class SpaProject(Base):
    """Persisted metadata for a slug and the version it currently serves.

    Attributes:
        id: Auto-incrementing primary key.
        slug: Unique, immutable identifier used to embed the project.
        display_name: Human readable label.
        current_version: Version id of the served tree, NULL until the first
            promotion.
        status: One of the ``ProjectStatus`` values.
        storage_path: Directory of the current version.
        entry_point: Entry point path relative to ``storage_path``.
        size_bytes: Extracted size of the current version.
        file_count: File count of the current version.
    """

    __tablename__ = "spa_projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    current_version: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    storage_path: Mapped[str | None] = mapped_column(String, nullable=True)
    entry_point: Mapped[str] = mapped_column(String, nullable=False, default="index.html")
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    file_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    versions: Mapped[list[SpaProjectVersion]] = relationship(
        "SpaProjectVersion",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    promotions: Mapped[list[SpaProjectPromotion]] = relationship(
        "SpaProjectPromotion",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SpaProjectPromotion.id",
    )
