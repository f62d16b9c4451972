"""Street and bloom report tables"""
from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.domain.models import BloomStatus
from app.infrastructure.database import Base

bloom_status_enum = Enum(
    BloomStatus,
    name="bloom_status",
    values_callable=lambda statuses: [status.value for status in statuses],
)


class Street(Base):
    """A street within a neighborhood, created on its first report"""
    __tablename__ = "streets"
    __table_args__ = (
        UniqueConstraint("name", "neighborhood", name="uq_streets_name_neighborhood"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    neighborhood = Column(String(255), nullable=False, index=True)
    tree_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    reports = relationship("BloomStatusReportRecord", back_populates="street")


class BloomStatusReportRecord(Base):
    """Append-only bloom observation; current status is the latest row per street"""
    __tablename__ = "bloom_status_reports"
    __table_args__ = (
        Index("ix_bloom_status_reports_street_timestamp", "street_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True)
    street_id = Column(Integer, ForeignKey("streets.id", ondelete="CASCADE"), nullable=False)
    status = Column(bloom_status_enum, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    reporter = Column(String(100), nullable=False, default="Anonymous")
    latitude = Column(Float)
    longitude = Column(Float)
    tree_count = Column(Integer)  # Street tree count when the report was made

    street = relationship("Street", back_populates="reports")
