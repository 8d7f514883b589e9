"""Commission Engine - Deal Resolution"""
from .deal_resolver import DealResolver, MERGE_FIELDS

__all__ = ["DealResolver", "MERGE_FIELDS"]
