"""
Commission Distribution Calculator

Splits a reported amount across a deal's snapshot entries in proportion to
their percentages and upserts one pending commission per entry. Reads the
snapshot only, never the live hierarchy.
"""
from __future__ import annotations
import logging
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ...database import insert_for
from ...models.db_models import CommissionDB, CommissionSnapshotDB, CommissionStatus, _uuid
from ...models.ssot import CommissionLine

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def split_amount(amount: Decimal, weights: Sequence[Decimal]) -> List[Decimal]:
    """
    Pro-rata split of `amount` rounded to cents (largest remainder).

    The parts always sum to `amount` truncated to cents, so they never exceed
    it. Weights must sum to a positive value.
    """
    total_weight = sum(weights, Decimal("0"))
    if total_weight <= 0:
        raise ValueError("weights must sum to a positive value")

    target = amount.quantize(CENT, rounding=ROUND_DOWN)
    exact = [amount * w / total_weight for w in weights]
    parts = [e.quantize(CENT, rounding=ROUND_DOWN) for e in exact]

    leftover_cents = int(((target - sum(parts, Decimal("0"))) / CENT).to_integral_value())
    step = CENT if leftover_cents >= 0 else -CENT
    # Earliest index wins ties so the result is deterministic
    order = sorted(range(len(exact)), key=lambda i: (-(exact[i] - parts[i]) * (1 if step > 0 else -1), i))
    for i in order[:abs(leftover_cents)]:
        parts[i] += step
    return parts


class CommissionDistributionCalculator:

    def __init__(self, db: Session):
        self.db = db

    def calculate(self, deal_id: str, amount: Decimal) -> List[CommissionLine]:
        """Compute shares without writing anything."""
        entries = self.db.query(CommissionSnapshotDB).filter(
            CommissionSnapshotDB.deal_id == deal_id,
        ).order_by(CommissionSnapshotDB.level, CommissionSnapshotDB.agent_id).all()

        weights = [Decimal(e.percentage) for e in entries]
        total_weight = sum(weights, Decimal("0"))
        if total_weight <= 0:
            logger.warning(f"Deal {deal_id}: snapshot has no positive percentages, nothing distributed")
            return []

        lines = []
        for entry, share in zip(entries, split_amount(Decimal(amount), weights)):
            if share <= 0:
                continue
            lines.append(CommissionLine(
                agent_id=entry.agent_id,
                level=entry.level,
                commission_type=entry.commission_type,
                percentage=Decimal(entry.percentage),
                amount=share,
                upline_agent_id=entry.upline_agent_id,
            ))
        return lines

    def distribute(self, deal_id: str, amount: Decimal, commission_report_id: Optional[str] = None,
                   premium_amount: Optional[Decimal] = None) -> List[CommissionLine]:
        """
        Upsert one pending commission per share.

        A repeated distribution for the same deal overwrites amount and report
        but keeps the stored status.
        """
        lines = self.calculate(deal_id, amount)
        now = datetime.utcnow()

        for line in lines:
            stmt = insert_for(self.db, CommissionDB).values(
                id=_uuid(),
                deal_id=deal_id,
                agent_id=line.agent_id,
                commission_report_id=commission_report_id,
                upline_agent_id=line.upline_agent_id,
                level=line.level,
                commission_type=line.commission_type,
                percentage=line.percentage,
                amount=line.amount,
                premium_amount=premium_amount,
                status=CommissionStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["deal_id", "agent_id", "commission_type", "level"],
                set_={
                    "amount": stmt.excluded.amount,
                    "percentage": stmt.excluded.percentage,
                    "premium_amount": stmt.excluded.premium_amount,
                    "commission_report_id": stmt.excluded.commission_report_id,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            self.db.execute(stmt)

        if lines:
            logger.info(f"Deal {deal_id}: distributed {amount} across {len(lines)} agents")
        return lines
