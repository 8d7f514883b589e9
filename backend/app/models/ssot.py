"""
Commission Engine - Pipeline Models

Transient dataclasses passed between ingestion stages.
Nothing downstream of the normalizer reads raw carrier rows;
nothing downstream of the snapshot builder reads the live hierarchy.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


# =============================================================================
# ENUMS
# =============================================================================

class FileType(str, Enum):
    CSV = "csv"
    EXCEL = "excel"


class DealSource(str, Enum):
    """Who is writing to a deal; decides the status of a newly created deal."""
    COMMISSION_REPORT = "commission_report"
    AGENT_SUBMISSION = "agent_submission"


class DealOperation(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


# =============================================================================
# STAGE 1: Normalizer Output
# =============================================================================

@dataclass
class StandardizedRecord:
    """One carrier report row in the carrier-agnostic shape."""
    writing_agent_number: str
    client_name: str
    policy_number: str
    commissionable_premium: Decimal
    commission_amount: Decimal
    product: Optional[str] = None
    writing_agent_name: Optional[str] = None
    effective_date: Optional[date] = None
    app_date: Optional[date] = None
    premium_due_date: Optional[date] = None
    commission_paid_date: Optional[date] = None
    replacement_policy_effective_date: Optional[date] = None
    company: Optional[str] = None
    commission_type: Optional[str] = None
    commission_category: Optional[str] = None
    state: Optional[str] = None
    split_percentage: Optional[str] = None
    commission_rate: Optional[str] = None
    months_advanced: Optional[str] = None
    payment_mode: Optional[str] = None
    long_description: Optional[str] = None
    row_number: int = 0  # 1-based data row in the source file


@dataclass
class NormalizedReport:
    """Normalizer result for one uploaded file."""
    carrier_name: str
    file_type: FileType
    sheet_name: Optional[str]
    total_rows: int  # Rows read from the file before any filtering
    records: List[StandardizedRecord] = field(default_factory=list)
    dropped_rows: int = 0


# =============================================================================
# STAGE 2: Matching / Deal Resolution
# =============================================================================

@dataclass
class ProductMatch:
    product_id: str
    product_name: str
    score: float


@dataclass
class DealSubmission:
    """
    Everything one writer knows about a deal.

    None means "this writer has no value"; it never clears an existing value.
    """
    policy_number: str
    carrier_id: str
    agent_id: Optional[str] = None
    product_id: Optional[str] = None
    agency_id: Optional[str] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    application_number: Optional[str] = None
    writing_agent_number: Optional[str] = None
    annual_premium: Optional[Decimal] = None
    monthly_premium: Optional[Decimal] = None
    policy_effective_date: Optional[date] = None
    lead_source: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class DealResolution:
    deal_id: str
    operation: DealOperation
    filled_fields: List[str] = field(default_factory=list)
    snapshot_entries: int = 0


# =============================================================================
# STAGE 3: Hierarchy
# =============================================================================

@dataclass(frozen=True)
class UplineHop:
    """One element returned by the hierarchy traversal primitive."""
    agent_id: str
    upline_id: Optional[str]


@dataclass
class ChainLink:
    """One agent in a hierarchy chain. Level 0 is the writing agent."""
    agent_id: str
    level: int
    upline_id: Optional[str]
    position_id: Optional[str]
    name: str


@dataclass
class PositionCheck:
    """Read-only result of checking an agent's upline for positions."""
    agent_id: str
    has_all_positions: bool
    missing_positions: List[Dict[str, str]] = field(default_factory=list)
    total_checked: int = 0


# =============================================================================
# STAGE 4: Distribution
# =============================================================================

@dataclass
class CommissionLine:
    """One agent's share of a distributed commission amount."""
    agent_id: str
    level: int
    commission_type: str
    percentage: Decimal
    amount: Decimal
    upline_agent_id: Optional[str]


# =============================================================================
# INGESTION RESULT
# =============================================================================

@dataclass
class IngestionResult:
    """Caller-visible outcome of one upload."""
    report_id: str
    carrier_name: str
    file_type: FileType
    sheet_name: Optional[str]
    file_path: Optional[str]
    total_records: int  # Records that survived normalization
    total_rows: int = 0  # Rows read from the file
    processed_count: int = 0
    error_count: int = 0
    commissions_created: int = 0
    errors: List[str] = field(default_factory=list)
    status: str = "uploaded"
