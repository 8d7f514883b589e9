"""Commission Engine - Agent Hierarchy"""
from .chain_walker import DatabaseUplineTraversal, HierarchyChainWalker, UplineTraversal, MAX_HIERARCHY_DEPTH
from .precondition_validator import PreconditionValidator

__all__ = [
    "DatabaseUplineTraversal",
    "HierarchyChainWalker",
    "UplineTraversal",
    "MAX_HIERARCHY_DEPTH",
    "PreconditionValidator",
]
