"""Commission Engine - Carrier Format Registry

Static per-carrier report layouts. Validated once at start-up.
"""
from .formats import (
    ColumnMapping, CsvCarrierFormat, SpreadsheetCarrierFormat, CarrierFormatConfig,
    BUILTIN_CARRIER_FORMATS,
)
from .registry import CarrierFormatRegistry

__all__ = [
    "ColumnMapping",
    "CsvCarrierFormat",
    "SpreadsheetCarrierFormat",
    "CarrierFormatConfig",
    "BUILTIN_CARRIER_FORMATS",
    "CarrierFormatRegistry",
]
