"""
Precondition Validator

All-or-nothing gate run before a deal is created: every agent in the
upline chain needs a position, and every position needs an active
commission structure for the deal's carrier and product.
"""
from __future__ import annotations
import logging
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from ...models.db_models import AgentDB, CommissionStructureDB, PositionDB
from ...models.ssot import ChainLink, PositionCheck
from ..errors import HierarchyIncomplete
from .chain_walker import HierarchyChainWalker

logger = logging.getLogger(__name__)


class PreconditionValidator:

    def __init__(self, db: Session, walker: Optional[HierarchyChainWalker] = None):
        self.db = db
        self.walker = walker or HierarchyChainWalker(db)

    def validate(self, chain: List[ChainLink], carrier_id: str, product_id: str) -> None:
        """
        Raises:
            HierarchyIncomplete: listing agents without positions, or failing
                that, positions without an active commission structure
        """
        missing_agents = [
            {"agent_id": link.agent_id, "name": link.name}
            for link in chain if not link.position_id
        ]
        if missing_agents:
            logger.warning(f"Deal blocked: {len(missing_agents)} upline agents have no position")
            raise HierarchyIncomplete(agents_without_positions=missing_agents)

        position_ids = sorted({link.position_id for link in chain})
        configured: Set[str] = {
            row.position_id
            for row in self.db.query(CommissionStructureDB.position_id).filter(
                CommissionStructureDB.carrier_id == carrier_id,
                CommissionStructureDB.product_id == product_id,
                CommissionStructureDB.position_id.in_(position_ids),
                CommissionStructureDB.is_active.is_(True),
            ).distinct()
        }

        unconfigured = [pid for pid in position_ids if pid not in configured]
        if unconfigured:
            names = self._position_names(unconfigured)
            missing_positions = [{"position_id": pid, "name": names.get(pid, pid)} for pid in unconfigured]
            logger.warning(f"Deal blocked: {len(missing_positions)} positions lack commission structures")
            raise HierarchyIncomplete(positions_without_commissions=missing_positions)

    def check_positions(self, agent_id: str) -> PositionCheck:
        """Read-only report of which agents in the upline lack a position."""
        chain = self.walker.walk(agent_id)
        missing = [
            {"agent_id": link.agent_id, "name": link.name}
            for link in chain if not link.position_id
        ]
        return PositionCheck(
            agent_id=agent_id,
            has_all_positions=not missing,
            missing_positions=missing,
            total_checked=len(chain),
        )

    def agents_without_positions(self, agency_id: Optional[str] = None) -> List[AgentDB]:
        query = self.db.query(AgentDB).filter(AgentDB.position_id.is_(None), AgentDB.is_active.is_(True))
        if agency_id:
            query = query.filter(AgentDB.agency_id == agency_id)
        return query.order_by(AgentDB.last_name, AgentDB.first_name).all()

    def _position_names(self, position_ids: List[str]) -> Dict[str, str]:
        rows = self.db.query(PositionDB.id, PositionDB.name).filter(PositionDB.id.in_(position_ids)).all()
        return {row.id: row.name for row in rows}
