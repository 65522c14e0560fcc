"""
Applies a ContextSuggestion to a candidate action vector.

This is the reference consumer used by the agent's policy: it may adopt a
confident recommendation or nudge the agent away from an action that
failed before. All randomness comes from the caller's PRNG.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .types import ActionChannel, ActionVector, ACTION_CHANNEL_SIZES, ContextSuggestion

# Channels compared against the avoid vector
AVOID_CHANNELS = (ActionChannel.MOVE, ActionChannel.INTERACT, ActionChannel.ITEM)


@dataclass(frozen=True)
class AdvicePolicy:
    """
    Thresholds for acting on a suggestion.

    Attributes:
        adopt_confidence: Minimum confidence before a recommendation is considered
        adopt_scale: Adoption probability = confidence * adopt_scale
        avoid_threshold: Minimum avoidance strength before avoiding
    """
    adopt_confidence: float = 0.7
    adopt_scale: float = 0.3
    avoid_threshold: float = 0.5


@dataclass(frozen=True)
class AdviceTrace:
    """What the advisor did, for logging and reward shaping."""
    adopted: bool = False
    avoided: bool = False
    exploration_bonus: float = 0.0


def apply_suggestion(
    candidate: Sequence[int],
    suggestion: ContextSuggestion,
    rng: random.Random,
    policy: Optional[AdvicePolicy] = None,
) -> Tuple[ActionVector, AdviceTrace]:
    """
    Possibly override or veto the candidate action.

    Args:
        candidate: Action vector the primary policy picked
        suggestion: Suggestion for the current context
        rng: PRNG owned by the caller
        policy: Thresholds (defaults to AdvicePolicy())

    Returns:
        (action vector to execute, trace of what was applied)
    """
    policy = policy or AdvicePolicy()
    actions = list(candidate)
    adopted = False
    avoided = False

    recommended = suggestion.recommended_actions
    if recommended is not None and suggestion.confidence > policy.adopt_confidence:
        if rng.random() < suggestion.confidence * policy.adopt_scale:
            actions = list(recommended)
            adopted = True

    avoid = suggestion.avoid_actions
    if avoid is not None and suggestion.avoidance_strength > policy.avoid_threshold:
        matches = any(
            channel < len(actions) and channel < len(avoid) and actions[channel] == avoid[channel]
            for channel in AVOID_CHANNELS
        )
        if matches and actions and rng.random() < suggestion.avoidance_strength:
            actions[ActionChannel.MOVE] = rng.randrange(ACTION_CHANNEL_SIZES[ActionChannel.MOVE])
            avoided = True

    bonus = suggestion.exploration_bonus if suggestion.should_try_new_strategy else 0.0
    return tuple(actions), AdviceTrace(adopted=adopted, avoided=avoided, exploration_bonus=bonus)
