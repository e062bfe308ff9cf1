"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM models and database initialization.
Datetimes are stored as naive UTC.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from dispatch.core.config import get_settings
from dispatch.utils.datetime_utils import ensure_utc, now_utc


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def to_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an instant to the naive-UTC form stored in SQLite."""
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


def utcnow_naive() -> datetime:
    return to_db_datetime(now_utc())


# ===========================================
# ORM Models
# ===========================================


class RecurringPlanORM(Base):
    """Recurring plan ORM model."""

    __tablename__ = "recurring_plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    client_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    address = Column(String(500), nullable=False)
    coords = Column(JSON, nullable=True)
    priority = Column(String(20), default="Medium")
    status = Column(String(20), default="Active", index=True)

    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=True)
    timezone = Column(String(64), nullable=False)
    generation_window_days = Column(Integer, nullable=False, default=90)
    min_advance_days = Column(Integer, nullable=False, default=14)
    last_generated_through = Column(Date, nullable=True)

    billing_mode = Column(String(20), default="per_visit")
    invoice_timing = Column(String(20), default="on_completion")
    auto_invoice = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class RecurringRuleORM(Base):
    """Recurrence rule ORM model (1:1 with plan)."""

    __tablename__ = "recurring_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    plan_id = Column(
        String(36), ForeignKey("recurring_plans.id"), nullable=False, unique=True
    )
    frequency = Column(String(10), nullable=False)
    interval = Column(Integer, nullable=False, default=1)
    by_weekday = Column(JSON, nullable=True)  # ["MO", "WE", ...]
    by_month_day = Column(Integer, nullable=True)
    by_month = Column(Integer, nullable=True)
    arrival_constraint = Column(String(10), nullable=False, default="anytime")
    finish_constraint = Column(String(10), nullable=False, default="when_done")
    arrival_time = Column(String(5), nullable=True)  # HH:MM
    arrival_window_start = Column(String(5), nullable=True)
    arrival_window_end = Column(String(5), nullable=True)
    finish_time = Column(String(5), nullable=True)


class RecurringPlanLineItemORM(Base):
    """Template line item ORM model."""

    __tablename__ = "recurring_plan_line_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    plan_id = Column(String(36), ForeignKey("recurring_plans.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Float, nullable=False)
    unit_price = Column(Float, nullable=False)
    item_type = Column(String(20), nullable=True)
    sort_order = Column(Integer, default=0)


class RecurringOccurrenceORM(Base):
    """Occurrence ORM model."""

    __tablename__ = "recurring_occurrences"
    __table_args__ = (
        UniqueConstraint("plan_id", "occurrence_date", name="uq_occurrence_plan_date"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    plan_id = Column(String(36), ForeignKey("recurring_plans.id"), nullable=False, index=True)
    occurrence_date = Column(Date, nullable=False)
    occurrence_start_at = Column(DateTime, nullable=False, index=True)
    occurrence_end_at = Column(DateTime, nullable=False)
    arrival_window_start = Column(DateTime, nullable=True)
    arrival_window_end = Column(DateTime, nullable=True)
    status = Column(String(20), default="planned", index=True)
    job_visit_id = Column(String(36), nullable=True)
    skip_reason = Column(Text, nullable=True)
    skipped_at = Column(DateTime, nullable=True)
    generated_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class JobVisitORM(Base):
    """Job visit ORM model (local visit service)."""

    __tablename__ = "job_visits"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    plan_id = Column(String(36), nullable=False, index=True)
    occurrence_id = Column(String(36), nullable=False, unique=True)
    client_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    address = Column(String(500), nullable=False)
    priority = Column(String(20), default="Medium")
    status = Column(String(20), default="Scheduled")
    scheduled_start_at = Column(DateTime, nullable=False)
    scheduled_end_at = Column(DateTime, nullable=False)
    arrival_constraint = Column(String(10), nullable=False)
    finish_constraint = Column(String(10), nullable=False)
    arrival_time = Column(String(5), nullable=True)
    arrival_window_start = Column(String(5), nullable=True)
    arrival_window_end = Column(String(5), nullable=True)
    finish_time = Column(String(5), nullable=True)
    line_items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Float, default=0.0)
    billing_mode = Column(String(20), default="per_visit")
    invoice_timing = Column(String(20), default="on_completion")
    auto_invoice = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow_naive)


class ActivityLogORM(Base):
    """Activity log ORM model."""

    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    event_type = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=False, index=True)
    changes = Column(JSON, nullable=True, default=dict)
    actor_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow_naive, index=True)


# ===========================================
# Database Session Management
# ===========================================


def get_engine():
    """Get async engine instance."""
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def get_session_factory():
    """Get async session factory."""
    engine = get_engine()
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Initialize database tables."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
