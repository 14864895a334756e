"""
SQLAlchemy database models
"""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from db.database import Base


USER_ROLES = ("visitor", "staff")
ATTRACTION_STATUSES = ("open", "closed", "delayed")
NOTIFICATION_TYPES = ("queue_alerts", "status_updates", "general")


class User(Base):
    """Registered visitor or staff member"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(225), nullable=False, unique=True, index=True)
    password_hash = Column(String(225), nullable=False)
    role = Column(String(16), nullable=False, default="visitor", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('visitor', 'staff')", name="ck_users_role"),
    )


class UserSession(Base):
    """Server-side session bound to a cookie token"""
    __tablename__ = "user_sessions"

    id = Column(String(64), primary_key=True)  # opaque cookie token
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(225), nullable=False)
    role = Column(String(16), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UserPreferences(Base):
    """Notification preferences for a user"""
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    preferred_attractions = Column(Text, default="[]")  # JSON list of attraction names
    distance_alert_threshold = Column(Integer, nullable=False, default=500)  # meters
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Attraction(Base):
    """Zoo exhibit, ride or facility"""
    __tablename__ = "attractions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(150), nullable=False, unique=True)
    description = Column(Text)
    category = Column(String(100), index=True)  # e.g. Mammals, Birds
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    estimated_duration_minutes = Column(Integer, nullable=False, default=30)
    capacity = Column(Integer, nullable=False, default=100)
    status = Column(String(16), nullable=False, default="open", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_attractions_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_attractions_longitude"),
        CheckConstraint("capacity > 0", name="ck_attractions_capacity"),
        CheckConstraint("status IN ('open', 'closed', 'delayed')", name="ck_attractions_status"),
    )


class QueueStatus(Base):
    """Current queue length and wait for one attraction"""
    __tablename__ = "queue_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attraction_id = Column(
        Integer, ForeignKey("attractions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    queue_length = Column(Integer, nullable=False, default=0)
    estimated_wait_minutes = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("queue_length >= 0", name="ck_queue_status_length"),
        CheckConstraint("estimated_wait_minutes >= 0", name="ck_queue_status_wait"),
        Index("idx_queue_last_updated", "last_updated"),
    )


class Notification(Base):
    """Alert delivered to a single user"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    attraction_id = Column(Integer, ForeignKey("attractions.id", ondelete="SET NULL"))
    type = Column(String(32), nullable=False, default="general")
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_user_read", "user_id", "is_read"),
        Index("idx_notifications_created", "created_at"),
    )


class StaffMetric(Base):
    """Daily operational figures for one attraction"""
    __tablename__ = "staff_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attraction_id = Column(Integer, ForeignKey("attractions.id", ondelete="CASCADE"), nullable=False)
    metric_date = Column(Date, nullable=False)
    ticket_sales = Column(Integer, nullable=False, default=0)
    uptime_percentage = Column(Float, nullable=False, default=100.0)
    visitors_count = Column(Integer, nullable=False, default=0)
    avg_wait_time_minutes = Column(Float, nullable=False, default=0.0)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("attraction_id", "metric_date", name="unique_attraction_date"),
        CheckConstraint(
            "uptime_percentage >= 0 AND uptime_percentage <= 100", name="ck_staff_metrics_uptime"
        ),
    )
