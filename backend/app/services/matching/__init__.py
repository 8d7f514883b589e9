"""Commission Engine - Product Matching"""
from .product_matcher import ProductMatcher, levenshtein_distance, similarity, best_match

__all__ = ["ProductMatcher", "levenshtein_distance", "similarity", "best_match"]
