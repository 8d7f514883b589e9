"""
Commission Engine - Agents API Router

Hierarchy checks used before deals are entered, and position assignment,
which is how an incomplete upline gets fixed.
"""
from __future__ import annotations
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import to_http_exception
from ..models.db_models import AgentDB, PositionDB
from ..services.errors import CommissionEngineError
from ..services.hierarchy import PreconditionValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["agents"])


class PositionCheckResponse(BaseModel):
    agent_id: str
    has_all_positions: bool
    missing_positions: List[Dict[str, str]]
    total_checked: int


class AssignPositionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    agent_id: str = Field(alias="agentId", min_length=1)
    position_id: str = Field(alias="positionId", min_length=1)


class AgentSummary(BaseModel):
    agent_id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    agency_id: Optional[str] = None
    position_id: Optional[str] = None


@router.get("/without-positions", response_model=List[AgentSummary])
async def list_agents_without_positions(agency_id: Optional[str] = None, db: Session = Depends(get_db)):
    """Active agents that still need a position assigned."""
    agents = PreconditionValidator(db).agents_without_positions(agency_id)
    return [
        AgentSummary(
            agent_id=a.id,
            first_name=a.first_name,
            last_name=a.last_name,
            email=a.email,
            agency_id=a.agency_id,
            position_id=a.position_id,
        )
        for a in agents
    ]


@router.get("/{agent_id}/check-positions", response_model=PositionCheckResponse)
async def check_upline_positions(agent_id: str, db: Session = Depends(get_db)):
    """Whether the agent and every upline have a position."""
    if not db.query(AgentDB.id).filter(AgentDB.id == agent_id).first():
        raise HTTPException(status_code=404, detail="Agent not found")

    try:
        check = PreconditionValidator(db).check_positions(agent_id)
    except CommissionEngineError as e:
        raise to_http_exception(e)

    return PositionCheckResponse(
        agent_id=check.agent_id,
        has_all_positions=check.has_all_positions,
        missing_positions=check.missing_positions,
        total_checked=check.total_checked,
    )


@router.post("/assign-position", response_model=AgentSummary)
async def assign_position(request: AssignPositionRequest, db: Session = Depends(get_db)):
    """Give an agent a position. The position must belong to the agent's agency."""
    agent = db.query(AgentDB).filter(AgentDB.id == request.agent_id).first()
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    position = db.query(PositionDB).filter(PositionDB.id == request.position_id).first()
    if not position:
        raise HTTPException(status_code=404, detail="Position not found")
    if position.agency_id and agent.agency_id and position.agency_id != agent.agency_id:
        raise HTTPException(status_code=400, detail="Position belongs to a different agency")

    agent.position_id = position.id
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error assigning position to agent {agent.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error assigning position: {e}")

    db.refresh(agent)
    logger.info(f"Agent {agent.id} assigned position {position.name}")
    return AgentSummary(
        agent_id=agent.id,
        first_name=agent.first_name,
        last_name=agent.last_name,
        email=agent.email,
        agency_id=agent.agency_id,
        position_id=agent.position_id,
    )
