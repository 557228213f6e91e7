"""ORM model for the promotion log of a hosted project."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spa_hosting.data.db import Base

if TYPE_CHECKING:
    from spa_hosting.data.models.project import SpaProject


class SpaProjectPromotion(Base):
    """One row per successful promotion; rows are only ever inserted.

    Attributes:
        id: Auto-incrementing primary key, also the log order.
        project_id: Owning project.
        previous_version: Version served before the promotion, NULL for the
            first one.
        version_id: Version served after the promotion.
        promoted_at: When the promotion committed.
    """

    __tablename__ = "spa_project_promotions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("spa_projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_version: Mapped[str | None] = mapped_column(String(64), nullable=True)
    version_id: Mapped[str] = mapped_column(String(64), nullable=False)
    promoted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    project: Mapped[SpaProject] = relationship("SpaProject", back_populates="promotions")
