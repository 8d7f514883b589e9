"""Commission Engine - Snapshots and Distribution"""
from .snapshot_builder import CommissionSnapshotBuilder
from .distribution import CommissionDistributionCalculator, split_amount

__all__ = ["CommissionSnapshotBuilder", "CommissionDistributionCalculator", "split_amount"]
