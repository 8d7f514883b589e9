"""
Commission Engine - SQLAlchemy ORM Models
Relational models for agents, deals, commission snapshots and transactions
"""
from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, Date, Text, JSON, Boolean,
    ForeignKey, UniqueConstraint, Index, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from ..database import Base


def _uuid() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class DealStatus(str, Enum):
    """Lifecycle status of a deal."""
    PENDING = "pending"      # Submitted by an agent, not yet seen on a carrier report
    VERIFIED = "verified"    # Created or confirmed from a carrier commission report
    ACTIVE = "active"
    LAPSED = "lapsed"
    CANCELLED = "cancelled"


class CommissionStatus(str, Enum):
    """Payout status of a commission transaction."""
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


class ReportStatus(str, Enum):
    """Processing status of an uploaded commission report."""
    UPLOADED = "uploaded"
    PROCESSED = "processed"
    ERROR = "error"


# =============================================================================
# REFERENCE DATA
# =============================================================================

class AgencyDB(Base):
    """An insurance agency owning agents, positions and products."""
    __tablename__ = "agencies"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class CarrierDB(Base):
    """An insurance carrier whose commission reports are ingested."""
    __tablename__ = "carriers"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    name = Column(String(255), nullable=False, unique=True)  # Must match a carrier format name
    display_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    products = relationship("ProductDB", back_populates="carrier")


class ProductDB(Base):
    """A product sold under a carrier, optionally scoped to one agency."""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    carrier_id = Column(String(36), ForeignKey("carriers.id", ondelete="CASCADE"), nullable=False, index=True)
    agency_id = Column(String(36), ForeignKey("agencies.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    carrier = relationship("CarrierDB", back_populates="products")


class PositionDB(Base):
    """A named rung in the agency compensation ladder."""
    __tablename__ = "positions"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    agency_id = Column(String(36), ForeignKey("agencies.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    level = Column(Integer, nullable=False, default=0)  # Ladder rank, also drives downline visibility
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class AgentDB(Base):
    """
    An agent in the referral hierarchy.

    Each agent has at most one upline, so the agents of an agency form a
    forest. position_id stays null until an administrator assigns one.
    """
    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    agency_id = Column(String(36), ForeignKey("agencies.id", ondelete="SET NULL"), nullable=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    upline_id = Column(String(36), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True, index=True)
    position_id = Column(String(36), ForeignKey("positions.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    position = relationship("PositionDB")
    carrier_numbers = relationship("AgentCarrierNumberDB", back_populates="agent", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AgentCarrierNumberDB(Base):
    """The writing-agent number a carrier uses for one of our agents."""
    __tablename__ = "agent_carrier_numbers"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    carrier_id = Column(String(36), ForeignKey("carriers.id", ondelete="CASCADE"), nullable=False)
    agent_number = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    agent = relationship("AgentDB", back_populates="carrier_numbers")

    __table_args__ = (
        UniqueConstraint("carrier_id", "agent_number", name="uq_agent_carrier_number"),
    )


class CommissionStructureDB(Base):
    """
    Commission percentage for a (carrier, position, product).

    Several rows may exist for the same triple; the active row with the
    lowest `level` is authoritative. This `level` is NOT hierarchy depth.
    """
    __tablename__ = "commission_structures"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    carrier_id = Column(String(36), ForeignKey("carriers.id", ondelete="CASCADE"), nullable=False)
    position_id = Column(String(36), ForeignKey("positions.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    commission_type = Column(String(50), nullable=False, default="advance")
    percentage = Column(Numeric(7, 3), nullable=False)
    level = Column(Integer, nullable=False, default=0)
    effective_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_commission_structures_lookup", "carrier_id", "position_id", "product_id"),
    )


# =============================================================================
# DEALS
# =============================================================================

class DealDB(Base):
    """
    A sold policy. Exactly one row per (policy_number, carrier_id).

    Fields are filled by whichever writer sees them first (agent submission
    or carrier report); later writers only fill gaps.
    """
    __tablename__ = "deals"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    agency_id = Column(String(36), ForeignKey("agencies.id", ondelete="SET NULL"), nullable=True, index=True)
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True, index=True)
    carrier_id = Column(String(36), ForeignKey("carriers.id"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    policy_number = Column(String(100), nullable=False)
    application_number = Column(String(100), nullable=True)
    writing_agent_number = Column(String(100), nullable=True)

    # Client identity
    client_name = Column(String(255), nullable=True)
    client_email = Column(String(255), nullable=True)
    client_phone = Column(String(30), nullable=True)

    # Premiums
    annual_premium = Column(Numeric(12, 2), nullable=True)
    monthly_premium = Column(Numeric(12, 2), nullable=True)
    policy_effective_date = Column(Date, nullable=True)

    lead_source = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(SQLEnum(DealStatus), default=DealStatus.PENDING, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    snapshots = relationship(
        "CommissionSnapshotDB",
        back_populates="deal",
        order_by="CommissionSnapshotDB.level",
    )

    __table_args__ = (
        UniqueConstraint("policy_number", "carrier_id", name="uq_deal_policy_carrier"),
    )


class CommissionSnapshotDB(Base):
    """
    Immutable per-agent commission rate captured when a deal is created.

    Written once per (deal, agent, commission_type, level) and never updated,
    so payouts reflect the hierarchy as it was when the policy was sold.
    """
    __tablename__ = "commission_snapshots"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_id = Column(String(36), ForeignKey("agents.id"), nullable=False)
    position_id = Column(String(36), ForeignKey("positions.id"), nullable=True)
    carrier_id = Column(String(36), ForeignKey("carriers.id"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    upline_agent_id = Column(String(36), nullable=True)  # Null at the top of the chain
    level = Column(Integer, nullable=False)  # 0 = writing agent
    commission_type = Column(String(50), nullable=False)
    percentage = Column(Numeric(7, 3), nullable=False)
    snapshot_date = Column(DateTime, default=datetime.utcnow)

    deal = relationship("DealDB", back_populates="snapshots")

    __table_args__ = (
        UniqueConstraint("deal_id", "agent_id", "commission_type", "level", name="uq_commission_snapshot_entry"),
    )


# =============================================================================
# COMMISSION REPORTS & TRANSACTIONS
# =============================================================================

class CommissionReportDB(Base):
    """One uploaded carrier commission report and its processing outcome."""
    __tablename__ = "commission_reports"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    carrier_id = Column(String(36), ForeignKey("carriers.id"), nullable=False, index=True)
    agency_id = Column(String(36), ForeignKey("agencies.id", ondelete="SET NULL"), nullable=True, index=True)
    uploaded_by = Column(String(36), nullable=True)

    # File metadata
    report_name = Column(String(500), nullable=False)
    original_filename = Column(String(500), nullable=False)
    file_path = Column(String(1000), nullable=True)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(100), nullable=True)

    # Manual sidecar fields (not derived from rows)
    upload_date = Column(Date, nullable=True)
    total_amount = Column(Numeric(12, 2), default=0)

    # Processing counters
    record_count = Column(Integer, default=0)
    processed_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    processing_errors = Column(JSON, nullable=True)  # List of per-row error messages
    status = Column(SQLEnum(ReportStatus), default=ReportStatus.UPLOADED, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CommissionDB(Base):
    """A commission owed to one agent for one deal, derived from the snapshot."""
    __tablename__ = "commissions"

    id = Column(String(36), primary_key=True, default=_uuid)  # UUID
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_id = Column(String(36), ForeignKey("agents.id"), nullable=False, index=True)
    commission_report_id = Column(String(36), ForeignKey("commission_reports.id", ondelete="SET NULL"), nullable=True)
    upline_agent_id = Column(String(36), nullable=True)
    level = Column(Integer, nullable=False)
    commission_type = Column(String(50), nullable=False)
    percentage = Column(Numeric(7, 3), nullable=False)  # Copied from the snapshot
    amount = Column(Numeric(12, 2), nullable=False)
    premium_amount = Column(Numeric(12, 2), nullable=True)
    status = Column(SQLEnum(CommissionStatus), default=CommissionStatus.PENDING, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("deal_id", "agent_id", "commission_type", "level", name="uq_commission_entry"),
    )
