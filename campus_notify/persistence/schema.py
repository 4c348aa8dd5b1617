"""Database schema definition and ORM models.

Only the notifications table is owned here. Student and user tables belong to
the rest of the application and are read through the recipient directory.
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, Column, Index, Integer, String, Text, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from campus_notify.domain.models import Notification
from campus_notify.utils.timestamps import format_timestamp, parse_iso_datetime

logger = logging.getLogger(__name__)

Base = declarative_base()


class NotificationModel(Base):
    """ORM model for the notifications table."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)

    recipient_id = Column(Integer, nullable=False)
    sender_id = Column(Integer, nullable=True)

    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    # JSON text; never interpreted by the store
    data = Column(Text, nullable=True)

    is_read = Column(Boolean, nullable=False, default=False)

    # ISO 8601 string, fixed width so that string order is time order
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_notifications_recipient_created", "recipient_id", "created_at"),
        Index("idx_notifications_recipient_read", "recipient_id", "is_read"),
        Index("idx_notifications_created", "created_at"),
    )

    def to_domain(self) -> Notification:
        """Convert ORM model to domain model."""
        return Notification(
            id=self.id,
            recipient_id=self.recipient_id,
            sender_id=self.sender_id,
            type=self.type,
            title=self.title,
            message=self.message,
            data=deserialize_data(self.data),
            is_read=bool(self.is_read),
            created_at=parse_iso_datetime(self.created_at),
        )


def format_created_at(dt: datetime) -> str:
    """Format a timestamp in the column's storage format."""
    return format_timestamp(dt, include_microseconds=True)


def serialize_data(data: Any) -> Optional[str]:
    """Serialize a payload to JSON text; None is stored as SQL NULL.

    Raises:
        TypeError: If the payload is not JSON-serializable
    """
    if data is None:
        return None
    return json.dumps(data, ensure_ascii=False)


def deserialize_data(raw: Optional[str]) -> Any:
    """Inverse of serialize_data()."""
    if raw is None or raw == "":
        return None
    return json.loads(raw)


def create_schema(engine: Engine) -> None:
    """Create the notifications table and indexes if they don't exist.

    Safe to call repeatedly (uses checkfirst).
    """
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
