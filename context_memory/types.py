from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple

# Discrete action choices for one decision tick, one int per channel.
ActionVector = Tuple[int, ...]


class ActionChannel(IntEnum):
    """Index of each channel in the reference agent's action vector."""
    MOVE = 0         # 0-4: idle, up, down, left, right
    INTERACT = 1     # 0-2: none, item interaction, face-to-face
    ITEM = 2         # 0-10: none, use slot 1-10
    COMMUNICATE = 3  # 0-6: none, message kinds
    COMBAT = 4       # 0-2: none, attack, switch weapon


# Number of choices per channel, in ActionChannel order.
ACTION_CHANNEL_SIZES: Tuple[int, ...] = (5, 3, 11, 7, 3)


class ItemCategory(Enum):
    """Category of an inventory item as seen by the context encoder."""
    WEAPON = "weapon"
    ARMOR = "armor"
    FOOD = "food"
    DRINK = "drink"
    MEDICINE = "medicine"
    MATERIAL = "material"
    CURRENCY = "currency"
    OTHER = "other"


@dataclass(frozen=True)
class Context:
    """
    Snapshot of an agent's situation at one update tick.

    Built once per update interval from live sensor readings and never
    mutated afterwards.

    Attributes:
        health_ratio: Current health / max health (0.0 to 1.0)
        hunger_ratio: Current hunger / max hunger (0.0 to 1.0)
        thirst_ratio: Current thirst / max thirst (0.0 to 1.0)
        grid_x: Quantized world x position
        grid_y: Quantized world y position
        nearby_enemy_count: Enemies currently perceived
        nearby_item_count: Pickups currently perceived
        nearby_npc_count: Other agents currently perceived
        has_weapon: Whether any inventory slot holds a weapon
        item_count: Number of occupied inventory slots
        time_phase: Time-of-day bucket inside the day period
    """
    health_ratio: float = 1.0
    hunger_ratio: float = 1.0
    thirst_ratio: float = 1.0
    grid_x: int = 0
    grid_y: int = 0
    nearby_enemy_count: int = 0
    nearby_item_count: int = 0
    nearby_npc_count: int = 0
    has_weapon: bool = False
    item_count: int = 0
    time_phase: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ContextSuggestion:
    """
    Advice for the agent's next action, built fresh for every query.

    Attributes:
        recommended_actions: Action vector that worked in similar contexts
        confidence: How strongly the recommendation is supported (0.0 to 1.0)
        avoid_actions: Action vector that failed in similar contexts
        avoidance_strength: How strongly to avoid it (0.0 to 1.0)
        should_try_new_strategy: Known options look bad, or nothing is known
        exploration_bonus: Reward bonus the caller may grant for exploring
        neighbor_count: Number of similar contexts the advice is based on
    """
    recommended_actions: Optional[ActionVector] = None
    confidence: float = 0.0
    avoid_actions: Optional[ActionVector] = None
    avoidance_strength: float = 0.0
    should_try_new_strategy: bool = False
    exploration_bonus: float = 0.0
    neighbor_count: int = 0

    @property
    def is_novel(self) -> bool:
        """True when no similar context was found."""
        return self.neighbor_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommended_actions": list(self.recommended_actions) if self.recommended_actions is not None else None,
            "confidence": self.confidence,
            "avoid_actions": list(self.avoid_actions) if self.avoid_actions is not None else None,
            "avoidance_strength": self.avoidance_strength,
            "should_try_new_strategy": self.should_try_new_strategy,
            "exploration_bonus": self.exploration_bonus,
            "neighbor_count": self.neighbor_count,
        }
