"""
Commission Engine - Error Taxonomy

Upload-level errors abort the whole batch. Row-level errors are recorded
against the report and processing moves on to the next row.
"""
from typing import Any, Dict, List, Optional


class CommissionEngineError(Exception):
    """Base error carrying a machine-readable code and details."""

    code = "commission_engine_error"
    fatal = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# UPLOAD-LEVEL (fatal for the whole upload)
# =============================================================================

class UnsupportedCarrier(CommissionEngineError):
    code = "unsupported_carrier"


class FileTypeMismatch(CommissionEngineError):
    code = "invalid_file_type"


class ReportParseError(CommissionEngineError):
    code = "file_parse_error"


class NoValidRecords(CommissionEngineError):
    code = "no_valid_records"


class HierarchyCycle(CommissionEngineError):
    """The upline graph revisits an agent or exceeds the hop cap."""
    code = "hierarchy_cycle"

    def __init__(self, agent_id: str, path: List[str], reason: str = "cycle"):
        if reason == "depth":
            message = (
                f"Upline chain for agent {agent_id} exceeds {len(path)} hops; "
                f"check the hierarchy configuration"
            )
        else:
            message = (
                f"Upline chain for agent {agent_id} revisits an agent "
                f"({' -> '.join(path)}); the hierarchy contains a cycle"
            )
        super().__init__(message, details={"agent_id": agent_id, "path": path, "reason": reason})


class StorageError(CommissionEngineError):
    code = "storage_error"


class PersistenceError(CommissionEngineError):
    code = "persistence_error"


# =============================================================================
# ROW-LEVEL (recorded, processing continues)
# =============================================================================

class RowError(CommissionEngineError):
    fatal = False
    code = "row_error"


class RowSchemaError(RowError):
    """A row lacks a required column. Dropped silently by the normalizer."""
    code = "row_schema_error"


class InvalidAmount(RowError):
    """A money value that cannot be stored in a 12-digit, 2-place column."""
    code = "invalid_amount"

    def __init__(self, field_name: str, value: Any):
        super().__init__(
            f"{field_name} is out of range: {value}",
            details={"field": field_name, "value": str(value)},
        )


class MissingProductName(RowError):
    code = "missing_product_name"


class ProductMatchBelowConfidence(RowError):
    code = "product_match_below_confidence"

    def __init__(self, product_name: str, best_guess: Optional[str], score: float):
        message = (
            f'No confident product match found for "{product_name}". '
            f'Best guess was "{best_guess or "none"}" ({score * 100:.0f}% confidence). '
            f"Please check product names."
        )
        super().__init__(message, details={
            "product_name": product_name,
            "best_guess": best_guess,
            "score": score,
        })
        self.best_guess = best_guess
        self.score = score


class AgentNotFound(RowError):
    code = "agent_not_found"

    def __init__(self, carrier_name: str, agent_number: str):
        super().__init__(
            f"Writing agent not found for carrier {carrier_name} with agent number: {agent_number}",
            details={"carrier": carrier_name, "agent_number": agent_number},
        )


class HierarchyIncomplete(RowError):
    """
    The upline chain of a new deal cannot be fully priced.

    Fatal for that one deal-creation attempt: nothing is written.
    """
    code = "hierarchy_incomplete"

    def __init__(
        self,
        agents_without_positions: Optional[List[Dict[str, str]]] = None,
        positions_without_commissions: Optional[List[Dict[str, str]]] = None,
    ):
        agents_without_positions = agents_without_positions or []
        positions_without_commissions = positions_without_commissions or []
        if agents_without_positions:
            names = ", ".join(a["name"] for a in agents_without_positions)
            message = (
                f"Cannot create deal: The following agents in the upline hierarchy "
                f"do not have positions assigned: {names}."
            )
        else:
            names = ", ".join(p["name"] for p in positions_without_commissions)
            message = (
                f"Cannot create deal: Commission percentages are not configured for "
                f"positions {names} on this carrier and product."
            )
        super().__init__(message, details={
            "agents_without_positions": agents_without_positions,
            "positions_without_commissions": positions_without_commissions,
        })
        self.agents_without_positions = agents_without_positions
        self.positions_without_commissions = positions_without_commissions
