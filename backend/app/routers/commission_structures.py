"""
Commission Engine - Commission Structures API Router

Percentages per (carrier, position, product). These feed the snapshot
taken when a deal is created; changing them never alters existing deals.
"""
from __future__ import annotations
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import CarrierDB, CommissionStructureDB, PositionDB, ProductDB

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/commission-structures", tags=["commission-structures"])


class CommissionStructureRequest(BaseModel):
    carrier_id: str
    position_id: str
    product_id: str
    commission_type: str = "advance"
    percentage: Decimal = Field(ge=0, le=Decimal("999.99"))
    level: int = Field(default=0, ge=0)
    effective_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


class CommissionStructureUpdateRequest(CommissionStructureRequest):
    is_active: bool = True


class CommissionStructureResponse(BaseModel):
    id: str
    carrier_id: str
    position_id: str
    product_id: str
    commission_type: str
    percentage: Decimal
    level: int
    effective_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool
    notes: Optional[str] = None


def check_references(db: Session, request: CommissionStructureRequest) -> None:
    """404 unless the carrier, position and product all exist."""
    if request.end_date and request.effective_date and request.end_date < request.effective_date:
        raise HTTPException(status_code=400, detail="end_date must not be before effective_date")

    for model, key, label in (
        (CarrierDB, request.carrier_id, "Carrier"),
        (PositionDB, request.position_id, "Position"),
        (ProductDB, request.product_id, "Product"),
    ):
        if not db.query(model.id).filter(model.id == key).first():
            raise HTTPException(status_code=404, detail=f"{label} not found")


def serialize_structure(structure: CommissionStructureDB) -> CommissionStructureResponse:
    return CommissionStructureResponse(
        id=structure.id,
        carrier_id=structure.carrier_id,
        position_id=structure.position_id,
        product_id=structure.product_id,
        commission_type=structure.commission_type,
        percentage=structure.percentage,
        level=structure.level,
        effective_date=structure.effective_date,
        end_date=structure.end_date,
        is_active=bool(structure.is_active),
        notes=structure.notes,
    )


@router.get("", response_model=List[CommissionStructureResponse])
async def list_commission_structures(
    carrier_id: Optional[str] = None,
    product_id: Optional[str] = None,
    commission_type: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Active, open-ended structures ordered by level."""
    query = db.query(CommissionStructureDB).filter(
        CommissionStructureDB.is_active.is_(True),
        CommissionStructureDB.end_date.is_(None),
    )
    if carrier_id:
        query = query.filter(CommissionStructureDB.carrier_id == carrier_id)
    if product_id:
        query = query.filter(CommissionStructureDB.product_id == product_id)
    if commission_type:
        query = query.filter(CommissionStructureDB.commission_type == commission_type)

    structures = query.order_by(CommissionStructureDB.level, CommissionStructureDB.created_at).all()
    return [serialize_structure(s) for s in structures]


@router.post("", response_model=CommissionStructureResponse, status_code=201)
async def create_commission_structure(request: CommissionStructureRequest, db: Session = Depends(get_db)):
    """Add a structure. Existing deals keep the percentages they were snapshotted with."""
    check_references(db, request)

    structure = CommissionStructureDB(**request.model_dump(), is_active=True)
    try:
        db.add(structure)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating commission structure: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating commission structure: {e}")

    db.refresh(structure)
    logger.info(
        f"Commission structure {structure.id}: position {structure.position_id} "
        f"= {structure.percentage}% ({structure.commission_type}, level {structure.level})"
    )
    return serialize_structure(structure)


@router.put("/{structure_id}", response_model=CommissionStructureResponse)
async def update_commission_structure(
    structure_id: str,
    request: CommissionStructureUpdateRequest,
    db: Session = Depends(get_db),
):
    """
    Replace a structure's values, or retire it with is_active=false.

    Deals already created keep their snapshot; only deals created after the
    change see the new percentage.
    """
    structure = db.query(CommissionStructureDB).filter(CommissionStructureDB.id == structure_id).first()
    if not structure:
        raise HTTPException(status_code=404, detail="Commission structure not found")

    check_references(db, request)

    values = request.model_dump(exclude={"created_by"})
    if values["effective_date"] is None:
        values["effective_date"] = date.today()
    for field_name, value in values.items():
        setattr(structure, field_name, value)

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating commission structure {structure_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error updating commission structure: {e}")

    db.refresh(structure)
    logger.info(
        f"Commission structure {structure.id} updated: {structure.percentage}% "
        f"(active={structure.is_active})"
    )
    return serialize_structure(structure)
