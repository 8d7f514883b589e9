"""
Product Matcher

Resolves the free-text product name on a carrier report to one of the
agency's products for that carrier using normalized Levenshtein similarity.
"""
from __future__ import annotations
import logging
import os
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ...models.db_models import ProductDB
from ...models.ssot import ProductMatch
from ..errors import MissingProductName, ProductMatchBelowConfidence

logger = logging.getLogger(__name__)

PRODUCT_MATCH_THRESHOLD = float(os.getenv("PRODUCT_MATCH_THRESHOLD", "0.7"))


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Case-insensitive similarity in [0, 1]. Two empty strings score 1.0."""
    a, b = a.lower(), b.lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein_distance(a, b)) / longest


def best_match(name: str, candidates: Sequence[Tuple[str, str]]) -> Optional[ProductMatch]:
    """
    Highest-scoring (id, name) candidate.

    Ties keep the earlier candidate, so the caller's ordering decides them.
    """
    best: Optional[ProductMatch] = None
    for product_id, product_name in candidates:
        score = similarity(name, product_name)
        if best is None or score > best.score:
            best = ProductMatch(product_id=product_id, product_name=product_name, score=score)
    return best


class ProductMatcher:
    """Matches report product names against the products table."""

    def __init__(self, db: Session, threshold: Optional[float] = None):
        self.db = db
        self.threshold = PRODUCT_MATCH_THRESHOLD if threshold is None else threshold

    def candidates(self, carrier_id: str, agency_id: Optional[str] = None) -> List[Tuple[str, str]]:
        """Active products of the carrier, ordered by name then id."""
        query = self.db.query(ProductDB.id, ProductDB.name).filter(
            ProductDB.carrier_id == carrier_id,
            ProductDB.is_active.is_(True),
        )
        if agency_id:
            query = query.filter(ProductDB.agency_id == agency_id)
        return [(row.id, row.name) for row in query.order_by(ProductDB.name, ProductDB.id).all()]

    def match(self, product_name: Optional[str], carrier_id: str, agency_id: Optional[str] = None) -> ProductMatch:
        """
        Raises:
            MissingProductName: if the record carries no product name
            ProductMatchBelowConfidence: if no candidate reaches the threshold
        """
        if not product_name or not product_name.strip():
            raise MissingProductName("Product name is missing from commission report")

        match = best_match(product_name.strip(), self.candidates(carrier_id, agency_id))
        if match is None or match.score < self.threshold:
            raise ProductMatchBelowConfidence(
                product_name,
                match.product_name if match else None,
                match.score if match else 0.0,
            )

        logger.debug(f"Matched product '{product_name}' -> '{match.product_name}' ({match.score:.2f})")
        return match
