"""
Commission Engine - Ingestion Engine

Runs one uploaded carrier report through the pipeline:

    bytes -> ReportNormalizer -> StandardizedRecord[]
          -> per record (own savepoint):
                agent lookup -> ProductMatcher -> DealResolver
                -> CommissionDistributionCalculator
          -> report counters and status

Row errors are recorded on the report and processing moves on. Upload-level
errors (see services/errors.py) abort before or during the pass; an aborted
upload leaves no stored file behind.
"""
from __future__ import annotations
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import AgentCarrierNumberDB, CarrierDB, CommissionReportDB, ReportStatus
from ...models.ssot import DealSource, DealSubmission, IngestionResult, StandardizedRecord
from ..carriers.registry import CarrierFormatRegistry
from ..commissions.distribution import CommissionDistributionCalculator
from ..deals.deal_resolver import DealResolver
from ..errors import AgentNotFound, PersistenceError, RowError, UnsupportedCarrier
from ..matching.product_matcher import ProductMatcher
from .normalizer import ReportNormalizer
from .storage import ReportStorage

logger = logging.getLogger(__name__)


class IngestionEngine:
    """
    Processes commission report uploads.

    The registry and storage are shared, process-wide collaborators; the
    engine itself is built per request around one database session.
    """

    def __init__(
        self,
        db: Session,
        registry: CarrierFormatRegistry,
        storage: ReportStorage,
        matcher: Optional[ProductMatcher] = None,
        resolver: Optional[DealResolver] = None,
        distributor: Optional[CommissionDistributionCalculator] = None,
    ):
        self.db = db
        self.registry = registry
        self.storage = storage
        self.normalizer = ReportNormalizer(registry)
        self.matcher = matcher or ProductMatcher(db)
        self.resolver = resolver or DealResolver(db)
        self.distributor = distributor or CommissionDistributionCalculator(db)

    def get_carrier(self, carrier_id: str) -> CarrierDB:
        carrier = self.db.query(CarrierDB).filter(CarrierDB.id == carrier_id).first()
        if carrier is None:
            raise UnsupportedCarrier(f"Carrier not found: {carrier_id}", details={"carrier_id": carrier_id})
        return carrier

    def ingest(
        self,
        content: bytes,
        filename: str,
        carrier_id: str,
        agency_id: Optional[str] = None,
        uploaded_by: Optional[str] = None,
        content_type: Optional[str] = None,
        total_amount: Optional[Decimal] = None,
        report_date: Optional[date] = None,
    ) -> IngestionResult:
        """
        Ingest one report file.

        Raises:
            UnsupportedCarrier, FileTypeMismatch, ReportParseError, NoValidRecords,
            HierarchyCycle, StorageError, PersistenceError
        """
        carrier = self.get_carrier(carrier_id)
        report = self.normalizer.normalize(content, filename, carrier.name)
        file_path = self.storage.save(content, agency_id, report.carrier_name, filename)

        try:
            db_report = CommissionReportDB(
                carrier_id=carrier.id,
                agency_id=agency_id,
                uploaded_by=uploaded_by,
                report_name=filename,
                original_filename=filename,
                file_path=file_path,
                file_size=len(content),
                file_type=content_type,
                upload_date=report_date,
                total_amount=total_amount or Decimal("0"),
                record_count=len(report.records),
                status=ReportStatus.UPLOADED,
            )
            self.db.add(db_report)
            self.db.flush()

            result = IngestionResult(
                report_id=db_report.id,
                carrier_name=report.carrier_name,
                file_type=report.file_type,
                sheet_name=report.sheet_name,
                file_path=file_path,
                total_records=len(report.records),
                total_rows=report.total_rows,
            )

            logger.info(f"Processing {len(report.records)} records from {filename} for {carrier.name}")
            for record in report.records:
                try:
                    with self.db.begin_nested():
                        result.commissions_created += self.process_record(record, carrier, agency_id, db_report.id)
                    result.processed_count += 1
                except RowError as e:
                    message = f"Row {record.row_number} (agent {record.writing_agent_number}, policy {record.policy_number}): {e.message}"
                    logger.warning(message)
                    result.errors.append(message)
                    result.error_count += 1

            db_report.processed_count = result.processed_count
            db_report.error_count = result.error_count
            db_report.processing_errors = result.errors
            db_report.status = ReportStatus.ERROR if result.error_count > 0 else ReportStatus.PROCESSED
            result.status = db_report.status.value
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.storage.delete(file_path)
            logger.error(f"Database error while ingesting {filename}: {e}")
            raise PersistenceError(f"Failed to save commission report: {e}") from e
        except Exception:
            self.db.rollback()
            self.storage.delete(file_path)
            raise

        logger.info(
            f"Report {result.report_id}: {result.processed_count} processed, "
            f"{result.error_count} errors, {result.commissions_created} commissions"
        )
        return result

    def process_record(self, record: StandardizedRecord, carrier: CarrierDB, agency_id: Optional[str],
                       report_id: str) -> int:
        """Process one record. Returns the number of commissions written."""
        agent_id = self.db.query(AgentCarrierNumberDB.agent_id).filter(
            AgentCarrierNumberDB.carrier_id == carrier.id,
            AgentCarrierNumberDB.agent_number == record.writing_agent_number,
        ).scalar()
        if agent_id is None:
            raise AgentNotFound(carrier.name, record.writing_agent_number)

        product = self.matcher.match(record.product, carrier.id, agency_id)

        resolution = self.resolver.resolve(
            DealSubmission(
                policy_number=record.policy_number,
                carrier_id=carrier.id,
                agent_id=agent_id,
                product_id=product.product_id,
                agency_id=agency_id,
                client_name=record.client_name,
                writing_agent_number=record.writing_agent_number,
                annual_premium=record.commissionable_premium,
                policy_effective_date=record.effective_date,
            ),
            DealSource.COMMISSION_REPORT,
        )

        lines = self.distributor.distribute(
            resolution.deal_id,
            record.commissionable_premium,
            commission_report_id=report_id,
            premium_amount=record.commissionable_premium,
        )
        return len(lines)
