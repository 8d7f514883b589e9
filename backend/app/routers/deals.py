"""
Commission Engine - Deals API Router

Manual (agent-entered) deal submission and deal lookup. Submissions go
through the same resolver as carrier reports.
"""
from __future__ import annotations
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import to_http_exception
from ..models.db_models import AgentDB, CarrierDB, DealDB
from ..models.ssot import DealOperation, DealSource, DealSubmission
from ..services.deals import DealResolver
from ..services.errors import CommissionEngineError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deals", tags=["deals"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class DealRequest(BaseModel):
    policy_number: str = Field(min_length=1)
    carrier_id: str
    agent_id: str
    product_id: Optional[str] = None
    agency_id: Optional[str] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    application_number: Optional[str] = None
    writing_agent_number: Optional[str] = None
    annual_premium: Optional[Decimal] = Field(default=None, ge=0)
    monthly_premium: Optional[Decimal] = Field(default=None, ge=0)
    policy_effective_date: Optional[date] = None
    lead_source: Optional[str] = None
    notes: Optional[str] = None


class SnapshotEntryResponse(BaseModel):
    agent_id: str
    position_id: Optional[str] = None
    upline_agent_id: Optional[str] = None
    level: int
    commission_type: str
    percentage: Decimal
    snapshot_date: str


class DealResponse(BaseModel):
    deal_id: str
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
    status: str
    snapshot: List[SnapshotEntryResponse] = []


class DealSubmitResponse(BaseModel):
    deal: DealResponse
    operation: str
    filled_fields: List[str] = []
    message: str


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def serialize_deal(deal: DealDB) -> DealResponse:
    return DealResponse(
        deal_id=deal.id,
        policy_number=deal.policy_number,
        carrier_id=deal.carrier_id,
        agent_id=deal.agent_id,
        product_id=deal.product_id,
        agency_id=deal.agency_id,
        client_name=deal.client_name,
        client_email=deal.client_email,
        client_phone=deal.client_phone,
        application_number=deal.application_number,
        writing_agent_number=deal.writing_agent_number,
        annual_premium=deal.annual_premium,
        monthly_premium=deal.monthly_premium,
        policy_effective_date=deal.policy_effective_date,
        lead_source=deal.lead_source,
        notes=deal.notes,
        status=deal.status.value,
        snapshot=[
            SnapshotEntryResponse(
                agent_id=s.agent_id,
                position_id=s.position_id,
                upline_agent_id=s.upline_agent_id,
                level=s.level,
                commission_type=s.commission_type,
                percentage=s.percentage,
                snapshot_date=str(s.snapshot_date),
            )
            for s in deal.snapshots
        ],
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("", response_model=DealSubmitResponse)
async def submit_deal(request: DealRequest, db: Session = Depends(get_db)):
    """
    Create a deal, or fill the empty fields of the existing deal for the
    same policy number and carrier.

    Creating requires product_id and a fully configured upline hierarchy.
    """
    if not db.query(CarrierDB.id).filter(CarrierDB.id == request.carrier_id).first():
        raise HTTPException(status_code=404, detail="Carrier not found")
    if not db.query(AgentDB.id).filter(AgentDB.id == request.agent_id).first():
        raise HTTPException(status_code=404, detail="Agent not found")

    resolver = DealResolver(db)
    if resolver.find(request.policy_number, request.carrier_id) is None and not request.product_id:
        raise HTTPException(status_code=400, detail="product_id is required to create a deal")

    submission = DealSubmission(**request.model_dump())
    try:
        resolution = resolver.resolve(submission, DealSource.AGENT_SUBMISSION)
        db.commit()
    except CommissionEngineError as e:
        db.rollback()
        logger.warning(f"Deal {request.policy_number} rejected: {e.message}")
        raise to_http_exception(e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error saving deal {request.policy_number}: {e}")
        raise HTTPException(status_code=500, detail=f"Error saving deal: {e}")

    deal = db.query(DealDB).filter(DealDB.id == resolution.deal_id).first()
    created = resolution.operation == DealOperation.CREATED
    body = DealSubmitResponse(
        deal=serialize_deal(deal),
        operation=resolution.operation.value,
        filled_fields=resolution.filled_fields,
        message="Deal created successfully" if created else "Deal updated successfully",
    )
    return JSONResponse(status_code=201 if created else 200, content=body.model_dump(mode="json"))


@router.get("/{deal_id}", response_model=DealResponse)
async def get_deal(deal_id: str, db: Session = Depends(get_db)):
    """Deal with its commission snapshot ordered by hierarchy level."""
    deal = db.query(DealDB).filter(DealDB.id == deal_id).first()
    if not deal:
        raise HTTPException(status_code=404, detail="Deal not found")
    return serialize_deal(deal)
