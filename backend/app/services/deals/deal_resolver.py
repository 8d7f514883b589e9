"""
Deal Resolver

Finds or creates the single deal for (policy_number, carrier_id).

Agent submissions and carrier reports both write here, in any order. A new
deal is only created once the upline hierarchy passes the precondition gate,
and it gets its commission snapshot in the same savepoint. An existing deal
only has its empty fields filled; populated values are never overwritten.
"""
from __future__ import annotations
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.db_models import DealDB, DealStatus
from ...models.ssot import DealOperation, DealResolution, DealSource, DealSubmission
from ..commissions.snapshot_builder import CommissionSnapshotBuilder
from ..hierarchy.chain_walker import HierarchyChainWalker
from ..errors import InvalidAmount
from ..hierarchy.precondition_validator import PreconditionValidator

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Largest value a Numeric(12, 2) money column holds
MAX_AMOUNT = Decimal("9999999999.99")

MONEY_FIELDS = ("annual_premium", "monthly_premium")

# Deal columns a later writer may fill when they are still empty
MERGE_FIELDS = (
    "agent_id",
    "product_id",
    "agency_id",
    "client_name",
    "client_email",
    "client_phone",
    "application_number",
    "writing_agent_number",
    "annual_premium",
    "monthly_premium",
    "policy_effective_date",
    "lead_source",
    "notes",
)

STATUS_BY_SOURCE = {
    DealSource.COMMISSION_REPORT: DealStatus.VERIFIED,
    DealSource.AGENT_SUBMISSION: DealStatus.PENDING,
}


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _checked_amount(field_name: str, value) -> Optional[Decimal]:
    """Coerce a money value to Decimal, rejecting what the columns cannot hold."""
    if value is None:
        return None
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(field_name, value)
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        raise InvalidAmount(field_name, value)
    return amount


def monthly_from_annual(annual_premium: Decimal) -> Decimal:
    return (annual_premium / 12).quantize(CENT)


class DealResolver:

    def __init__(
        self,
        db: Session,
        walker: Optional[HierarchyChainWalker] = None,
        validator: Optional[PreconditionValidator] = None,
        snapshot_builder: Optional[CommissionSnapshotBuilder] = None,
    ):
        self.db = db
        self.walker = walker or HierarchyChainWalker(db)
        self.validator = validator or PreconditionValidator(db, self.walker)
        self.snapshot_builder = snapshot_builder or CommissionSnapshotBuilder(db)

    def find(self, policy_number: str, carrier_id: str) -> Optional[DealDB]:
        return self.db.query(DealDB).filter(
            DealDB.policy_number == policy_number,
            DealDB.carrier_id == carrier_id,
        ).first()

    def resolve(self, submission: DealSubmission, source: DealSource) -> DealResolution:
        """
        Create or gap-fill the deal for the submission's key.

        Raises:
            HierarchyIncomplete: creating a deal whose upline cannot be priced
            HierarchyCycle: the upline graph is misconfigured
            InvalidAmount: a premium the money columns cannot hold
        """
        for field_name in MONEY_FIELDS:
            setattr(submission, field_name, _checked_amount(field_name, getattr(submission, field_name)))

        existing = self.find(submission.policy_number, submission.carrier_id)
        if existing is not None:
            return self.merge(existing, submission)

        try:
            return self.create(submission, source)
        except IntegrityError:
            # Another writer created the same key first; merge into theirs
            winner = self.find(submission.policy_number, submission.carrier_id)
            if winner is None:
                raise
            logger.info(f"Deal {submission.policy_number} created concurrently, merging into {winner.id}")
            return self.merge(winner, submission)

    def create(self, submission: DealSubmission, source: DealSource) -> DealResolution:
        if not submission.agent_id or not submission.product_id:
            raise ValueError("agent_id and product_id are required to create a deal")

        values = {f: getattr(submission, f) for f in MERGE_FIELDS}
        if values["monthly_premium"] is None and values["annual_premium"] is not None:
            values["monthly_premium"] = monthly_from_annual(values["annual_premium"])

        chain = self.walker.walk(submission.agent_id)
        self.validator.validate(chain, submission.carrier_id, submission.product_id)

        with self.db.begin_nested():
            deal = DealDB(
                policy_number=submission.policy_number,
                carrier_id=submission.carrier_id,
                status=STATUS_BY_SOURCE[source],
                **values,
            )
            self.db.add(deal)
            self.db.flush()
            written = self.snapshot_builder.build(deal.id, chain, submission.carrier_id, submission.product_id)

        logger.info(f"Created deal {deal.id} for policy {submission.policy_number} ({source.value})")
        return DealResolution(
            deal_id=deal.id,
            operation=DealOperation.CREATED,
            filled_fields=[f for f in MERGE_FIELDS if not _is_empty(values[f])],
            snapshot_entries=written,
        )

    def merge(self, deal: DealDB, submission: DealSubmission) -> DealResolution:
        """Fill only the fields that are still empty on the deal."""
        filled: List[str] = []
        for field_name in MERGE_FIELDS:
            incoming = getattr(submission, field_name)
            if _is_empty(incoming) or not _is_empty(getattr(deal, field_name)):
                continue
            setattr(deal, field_name, incoming)
            filled.append(field_name)

        # Monthly follows the annual premium only when this writer supplied it
        if "annual_premium" in filled and _is_empty(deal.monthly_premium):
            deal.monthly_premium = monthly_from_annual(deal.annual_premium)
            filled.append("monthly_premium")

        if filled:
            self.db.flush()
            logger.info(f"Deal {deal.id}: filled {', '.join(filled)}")

        return DealResolution(deal_id=deal.id, operation=DealOperation.UPDATED, filled_fields=filled)
