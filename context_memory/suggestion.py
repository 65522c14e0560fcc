"""
Builds action suggestions from the experience of similar contexts.

Does NOT choose actions. The suggestion only tells the agent's policy
what worked, what failed, and whether it should explore instead.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from .config import MemoryConfig, DEFAULT_MEMORY_CONFIG
from .encoder import ActionKeyError, decode_action_key
from .similarity import SimilarityIndex
from .store import MemoryStore
from .types import ActionVector, Context, ContextSuggestion
from .util import clamp01

logger = logging.getLogger(__name__)


class SuggestionBuilder:
    """
    Aggregates the best and worst actions of neighbouring contexts.

    Votes are weighted by similarity:
        vote[best_action] += best_action_value * similarity
        vote[worst_action] += worst_action_value * similarity

    The recommendation is the highest best-vote, the action to avoid is the
    lowest worst-vote. Both are normalized by the number of neighbours.
    Sample counts are not taken into account, so a context where only one
    action was ever tried reports it as both best and worst.
    """

    def __init__(
        self,
        store: MemoryStore,
        index: SimilarityIndex,
        config: MemoryConfig = DEFAULT_MEMORY_CONFIG,
    ):
        self.store = store
        self.index = index
        self.config = config

    def suggest(self, query: Context) -> ContextSuggestion:
        """
        Build a suggestion for the query context.

        Args:
            query: Current context

        Returns:
            ContextSuggestion; the novel-situation suggestion if no stored
            context is similar enough
        """
        similar = self.index.find_similar_contexts(query, self.config.suggestion_k)
        if not similar:
            return self.novel_suggestion()

        best_votes: Dict[str, float] = {}
        worst_votes: Dict[str, float] = {}
        success_total = 0.0

        for key, weight in similar:
            memory = self.store.get(key)
            success_total += memory.success_rate

            if memory.best_action:
                best_votes[memory.best_action] = (
                    best_votes.get(memory.best_action, 0.0) + memory.best_action_value * weight
                )
            if memory.worst_action:
                worst_votes[memory.worst_action] = (
                    worst_votes.get(memory.worst_action, 0.0) + memory.worst_action_value * weight
                )

        n = len(similar)

        recommended, top_vote = self._pick(best_votes, highest=True)
        avoid, bottom_vote = self._pick(worst_votes, highest=False)

        average_success = success_total / n
        should_explore = average_success < self.config.low_success_threshold
        bonus = self.config.failure_bonus_scale * (1.0 - average_success) if should_explore else 0.0

        return ContextSuggestion(
            recommended_actions=recommended,
            confidence=clamp01(top_vote / n) if recommended is not None else 0.0,
            avoid_actions=avoid,
            avoidance_strength=clamp01(-bottom_vote / n) if avoid is not None else 0.0,
            should_try_new_strategy=should_explore,
            exploration_bonus=bonus,
            neighbor_count=n,
        )

    def novel_suggestion(self) -> ContextSuggestion:
        """Suggestion for a situation with no similar experience."""
        return ContextSuggestion(
            should_try_new_strategy=True,
            exploration_bonus=self.config.novelty_bonus,
        )

    def _pick(self, votes: Dict[str, float], highest: bool) -> Tuple[Optional[ActionVector], float]:
        """
        Pick the winning vote and decode its action key.

        Ties go to the first key encountered. Keys that fail to decode are
        dropped from the vote.
        """
        chosen: Optional[ActionVector] = None
        chosen_vote = 0.0
        for action_key, vote in votes.items():
            if chosen is not None:
                if highest and not vote > chosen_vote:
                    continue
                if not highest and not vote < chosen_vote:
                    continue
            try:
                chosen = decode_action_key(action_key)
            except ActionKeyError as e:
                logger.warning(f"Dropping unparseable action from vote: {e}")
                continue
            chosen_vote = vote
        return chosen, chosen_vote

    def danger_score(self, query: Context) -> float:
        """
        Similarity-weighted death rate of the neighbouring contexts.

        Returns 0.0 when there are no neighbours.
        """
        similar: List[Tuple[str, float]] = self.index.find_similar_contexts(query, self.config.danger_k)
        if not similar:
            return 0.0
        weighted = sum(self.store.get(key).death_rate * weight for key, weight in similar)
        return weighted / len(similar)

    def is_dangerous(self, query: Context) -> bool:
        """Whether similar past situations often ended the episode."""
        return self.danger_score(query) > self.config.danger_threshold
