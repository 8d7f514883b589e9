"""
Commission Snapshot Builder

Captures each chain agent's commission percentage for a deal at the moment
the deal is created. Entries are insert-if-absent on
(deal_id, agent_id, commission_type, level), so a re-run never changes a
stored percentage.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ...database import insert_for
from ...models.db_models import CommissionSnapshotDB, CommissionStructureDB, _uuid
from ...models.ssot import ChainLink

logger = logging.getLogger(__name__)


class CommissionSnapshotBuilder:

    def __init__(self, db: Session):
        self.db = db

    def authoritative_structure(self, carrier_id: str, position_id: str, product_id: str) -> Optional[CommissionStructureDB]:
        """Active structure with the lowest `level` for the triple."""
        return self.db.query(CommissionStructureDB).filter(
            CommissionStructureDB.carrier_id == carrier_id,
            CommissionStructureDB.position_id == position_id,
            CommissionStructureDB.product_id == product_id,
            CommissionStructureDB.is_active.is_(True),
        ).order_by(CommissionStructureDB.level, CommissionStructureDB.created_at).first()

    def build(self, deal_id: str, chain: List[ChainLink], carrier_id: str, product_id: str) -> int:
        """
        Write snapshot entries for every chain agent that has a structure.

        Returns the number of entries written by this call (0 on re-runs).
        """
        structures: Dict[str, Optional[CommissionStructureDB]] = {}
        rows = []
        now = datetime.utcnow()

        for link in chain:
            if not link.position_id:
                continue
            if link.position_id not in structures:
                structures[link.position_id] = self.authoritative_structure(carrier_id, link.position_id, product_id)
            structure = structures[link.position_id]
            if structure is None:
                logger.warning(f"No commission structure for position {link.position_id}; agent {link.agent_id} skipped")
                continue

            rows.append({
                "id": _uuid(),
                "deal_id": deal_id,
                "agent_id": link.agent_id,
                "position_id": link.position_id,
                "carrier_id": carrier_id,
                "product_id": product_id,
                "upline_agent_id": link.upline_id,
                "level": link.level,
                "commission_type": structure.commission_type,
                "percentage": structure.percentage,
                "snapshot_date": now,
            })

        written = 0
        for row in rows:
            stmt = insert_for(self.db, CommissionSnapshotDB).values(**row)
            stmt = stmt.on_conflict_do_nothing(index_elements=["deal_id", "agent_id", "commission_type", "level"])
            written += self.db.execute(stmt).rowcount or 0

        logger.info(f"Snapshot for deal {deal_id}: {written} of {len(rows)} entries written")
        return written

    def entries(self, deal_id: str) -> List[CommissionSnapshotDB]:
        return self.db.query(CommissionSnapshotDB).filter(
            CommissionSnapshotDB.deal_id == deal_id,
        ).order_by(CommissionSnapshotDB.level, CommissionSnapshotDB.agent_id).all()

