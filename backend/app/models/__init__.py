"""Commission Engine - Data Models"""
from .ssot import (
    # Enums
    FileType, DealSource, DealOperation,
    # Normalizer output
    StandardizedRecord, NormalizedReport,
    # Matching / deals
    ProductMatch, DealSubmission, DealResolution,
    # Hierarchy
    UplineHop, ChainLink, PositionCheck,
    # Distribution / ingestion
    CommissionLine, IngestionResult,
)

__all__ = [
    "FileType", "DealSource", "DealOperation",
    "StandardizedRecord", "NormalizedReport",
    "ProductMatch", "DealSubmission", "DealResolution",
    "UplineHop", "ChainLink", "PositionCheck",
    "CommissionLine", "IngestionResult",
]
