"""
Incident Service Database Models

SQLAlchemy models for the PostgreSQL/PostGIS schema. The `coordinates`
geography column of `incidents` is generated by the database from
longitude/latitude and is only used by textual distance queries, so it is
not mapped here.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    UUID,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from ..constants import (
    MAX_NAME_LENGTH,
    MAX_STATUS_LENGTH,
    MAX_TYPE_LENGTH,
    STATUS_ACTIVE,
)


class Base(DeclarativeBase):
    """Canonical Base class for all database models."""

    pass


class Incident(Base):
    """Geofenced incident with a radius in meters."""

    __tablename__ = "incidents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    type: Mapped[str] = mapped_column(String(MAX_TYPE_LENGTH), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    latitude: Mapped[str] = mapped_column(String(12), nullable=False)
    longitude: Mapped[str] = mapped_column(String(13), nullable=False)
    radius: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(
        String(MAX_STATUS_LENGTH), nullable=False, default=STATUS_ACTIVE, index=True
    )
    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    resolved_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("radius > 0", name="check_incident_radius_positive"),
        CheckConstraint(
            "status IN ('active', 'resolved', 'archived')",
            name="check_incident_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Incident(id={self.id}, name={self.name}, status={self.status})>"


class Check(Base):
    """One user location check and the incidents it hit."""

    __tablename__ = "checks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    latitude: Mapped[str] = mapped_column(String(12), nullable=False)
    longitude: Mapped[str] = mapped_column(String(13), nullable=False)
    is_danger: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    detected_incident_ids: Mapped[List[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=list, server_default="{}"
    )
    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Check(id={self.id}, user_id={self.user_id})>"


__all__ = ["Base", "Incident", "Check"]
