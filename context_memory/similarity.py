"""
Weighted similarity between contexts and brute-force retrieval.

similarity = sum(weight_i * partial_i) / sum(weight_i), with every partial
in [0, 1]:
- health:   1 - |health_a - health_b|
- location: exp(-grid_distance / position_decay)
- enemies:  1 - |count_a - count_b| / count_cap, clamped
- items:    1 - |items_a - items_b| / count_cap, clamped

Retrieval scans every stored key. The store is bounded by eviction, so a
linear scan per query stays cheap.
"""
from __future__ import annotations

import logging
import math
from typing import List, Tuple

from .config import MemoryConfig, DEFAULT_MEMORY_CONFIG
from .encoder import ContextKeyError, decode_context_key
from .store import MemoryStore
from .types import Context
from .util import clamp01

logger = logging.getLogger(__name__)


def context_similarity(a: Context, b: Context, config: MemoryConfig = DEFAULT_MEMORY_CONFIG) -> float:
    """
    Similarity of two contexts in [0, 1].

    Symmetric, and 1.0 for identical contexts.
    """
    weights = config.weights

    health_sim = clamp01(1.0 - abs(a.health_ratio - b.health_ratio))

    grid_distance = math.hypot(a.grid_x - b.grid_x, a.grid_y - b.grid_y)
    location_sim = math.exp(-grid_distance / config.position_decay)

    enemy_sim = _count_similarity(a.nearby_enemy_count, b.nearby_enemy_count, config.count_cap)
    item_sim = _count_similarity(a.item_count, b.item_count, config.count_cap)

    score = (
        health_sim * weights.health
        + location_sim * weights.location
        + enemy_sim * weights.enemy
        + item_sim * weights.item
    )
    return clamp01(score / weights.total)


def _count_similarity(a: int, b: int, cap: float) -> float:
    return clamp01(1.0 - abs(a - b) / cap)


class SimilarityIndex:
    """
    Finds the stored contexts most similar to a query.

    Stored keys that cannot be decoded are skipped and counted; one bad
    entry never aborts a query.
    """

    def __init__(self, store: MemoryStore, config: MemoryConfig = DEFAULT_MEMORY_CONFIG):
        self.store = store
        self.config = config
        self.skipped_keys = 0

    def find_similar_contexts(self, query: Context, k: int) -> List[Tuple[str, float]]:
        """
        Return up to k (key, similarity) pairs, most similar first.

        Only contexts scoring strictly above the similarity threshold are
        returned. Equal scores keep store insertion order.

        Args:
            query: Context to compare against
            k: Maximum number of results

        Returns:
            Ordered list of (context_key, similarity)
        """
        threshold = self.config.similarity_threshold
        matches: List[Tuple[str, float]] = []

        for key in self.store.keys():
            try:
                stored = decode_context_key(key)
            except ContextKeyError as e:
                self.skipped_keys += 1
                logger.warning(f"Skipping unparseable context: {e}")
                continue

            score = context_similarity(query, stored, self.config)
            if score > threshold:
                matches.append((key, score))

        matches.sort(key=lambda m: m[1], reverse=True)
        return matches[:k]
