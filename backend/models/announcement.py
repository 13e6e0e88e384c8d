"""Announcement ORM model and its status lifecycle."""

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from core.timeutil import utcnow
from database import Base


class AnnouncementStatus(str, enum.Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class Announcement(Base):
    __tablename__ = "announcements"
    __table_args__ = (
        Index("idx_announcements_status_publish", "status", "publish_date"),
        Index("idx_announcements_listing", "is_sticky", "priority", "publish_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(100), nullable=False)
    content = Column(Text, nullable=False)  # Markdown
    status = Column(
        Enum(
            AnnouncementStatus,
            name="announcement_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=AnnouncementStatus.draft,
    )
    priority = Column(Integer, nullable=False, default=0)  # 0..10, higher first
    is_sticky = Column(Boolean, nullable=False, default=False)
    publish_date = Column(DateTime(timezone=True), nullable=True)
    expire_date = Column(DateTime(timezone=True), nullable=True)
    # SET NULL so that deleting an admin keeps their announcements
    created_by_id = Column(
        "created_by", Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by_id = Column(
        "updated_by", Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    # Filled in from Python so the stored value is UTC whatever the server zone
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    created_by = relationship("User", foreign_keys=[created_by_id], lazy="joined")
    updated_by = relationship("User", foreign_keys=[updated_by_id], lazy="joined")

    def set_status(self, status: AnnouncementStatus, now: datetime) -> None:
        """
        Move to *status*.  Any transition is allowed; entering ``published``
        stamps *now* as the publish time unless one is already set.
        """
        self.status = status
        if status == AnnouncementStatus.published and self.publish_date is None:
            self.publish_date = now
