"""
Commission Engine - Commission Reports API Router

Carrier report upload and processing results.
"""
from __future__ import annotations
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_registry, get_storage, to_http_exception
from ..models.db_models import CommissionReportDB
from ..services.carriers.registry import CarrierFormatRegistry
from ..services.errors import CommissionEngineError
from ..services.ingestion import IngestionEngine, ReportStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/commission-reports", tags=["commission-reports"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class UploadSidecar(BaseModel):
    """JSON `data` field sent alongside the uploaded file."""
    model_config = ConfigDict(populate_by_name=True)

    carrier_id: str = Field(alias="carrierId", min_length=1)
    agency_id: Optional[str] = Field(default=None, alias="agencyId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    amount: Optional[Decimal] = None
    report_date: Optional[date] = Field(default=None, alias="date")


class UploadResponse(BaseModel):
    success: bool = True
    report_id: str
    total_records: int
    processed_count: int
    error_count: int
    commissions_created: int
    total_rows: int
    carrier_config: str
    file_type: str
    sheet_name: Optional[str] = None
    file_path: Optional[str] = None
    status: str
    processing_errors: List[str] = []


class ReportDetailResponse(BaseModel):
    report_id: str
    carrier_id: str
    agency_id: Optional[str] = None
    original_filename: str
    file_path: Optional[str] = None
    upload_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    record_count: int
    processed_count: int
    error_count: int
    status: str
    processing_errors: List[str] = []
    created_at: str


class CarrierFormatResponse(BaseModel):
    name: str
    file_type: str
    sheet_name: Optional[str] = None
    required_columns: List[str]


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("/carriers", response_model=List[CarrierFormatResponse])
async def list_carrier_formats(registry: CarrierFormatRegistry = Depends(get_registry)):
    """List carriers whose report layout is configured."""
    return [
        CarrierFormatResponse(
            name=fmt.name,
            file_type=fmt.file_type,
            sheet_name=getattr(fmt, "sheet_name", None),
            required_columns=list(fmt.required_columns),
        )
        for fmt in registry
    ]


@router.post("/upload", response_model=UploadResponse)
async def upload_commission_report(
    file: UploadFile = File(...),
    data: str = Form(...),
    registry: CarrierFormatRegistry = Depends(get_registry),
    storage: ReportStorage = Depends(get_storage),
    db: Session = Depends(get_db),
):
    """
    Upload a carrier commission report and distribute its commissions.

    Row-level problems do not fail the request; they are returned in
    `processing_errors` and the report ends in status `error`.
    """
    try:
        sidecar = UploadSidecar.model_validate_json(data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid upload data: {e}")

    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    content = await file.read()
    engine = IngestionEngine(db, registry, storage)
    try:
        result = engine.ingest(
            content,
            file.filename,
            sidecar.carrier_id,
            agency_id=sidecar.agency_id,
            uploaded_by=sidecar.user_id,
            content_type=file.content_type,
            total_amount=sidecar.amount,
            report_date=sidecar.report_date,
        )
    except CommissionEngineError as e:
        logger.warning(f"Upload of {file.filename} rejected: {e.message}")
        raise to_http_exception(e)

    return UploadResponse(
        report_id=result.report_id,
        total_records=result.total_records,
        total_rows=result.total_rows,
        processed_count=result.processed_count,
        error_count=result.error_count,
        commissions_created=result.commissions_created,
        carrier_config=result.carrier_name,
        file_type=result.file_type.value,
        sheet_name=result.sheet_name,
        file_path=result.file_path,
        status=result.status,
        processing_errors=result.errors,
    )


@router.get("/{report_id}", response_model=ReportDetailResponse)
async def get_commission_report(report_id: str, db: Session = Depends(get_db)):
    """Processing outcome of one uploaded report."""
    report = db.query(CommissionReportDB).filter(CommissionReportDB.id == report_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Commission report not found")

    return ReportDetailResponse(
        report_id=report.id,
        carrier_id=report.carrier_id,
        agency_id=report.agency_id,
        original_filename=report.original_filename,
        file_path=report.file_path,
        upload_date=report.upload_date,
        total_amount=report.total_amount,
        record_count=report.record_count or 0,
        processed_count=report.processed_count or 0,
        error_count=report.error_count or 0,
        status=report.status.value,
        processing_errors=report.processing_errors or [],
        created_at=str(report.created_at),
    )


@router.get("/{report_id}/download")
async def download_commission_report(
    report_id: str,
    storage: ReportStorage = Depends(get_storage),
    db: Session = Depends(get_db),
):
    """Return the raw file exactly as it was uploaded."""
    report = db.query(CommissionReportDB).filter(CommissionReportDB.id == report_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Commission report not found")
    if not report.file_path:
        raise HTTPException(status_code=404, detail="File not found in storage")

    try:
        content = storage.open(report.file_path)
    except CommissionEngineError as e:
        raise to_http_exception(e)

    return Response(
        content=content,
        media_type=report.file_type or "application/octet-stream",
        headers={
            "Content-Disposition": f'attachment; filename="{report.original_filename}"',
            "Cache-Control": "private, no-cache",
        },
    )
