"""
Context encoder for the contextual experience memory.

Converts live agent readings into an immutable Context snapshot and
converts Contexts and action vectors to and from compact string keys.

Key format (one context, '_' separated):
    health_bucket _ hunger_bucket _ thirst_bucket _ grid_x _ grid_y
    _ nearby_enemy_count _ item_count _ has_weapon

Ratios are stored as tenths, so near-identical situations share a key.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config import MemoryConfig, DEFAULT_MEMORY_CONFIG
from .types import ActionVector, Context, ItemCategory

KEY_SEPARATOR = "_"
ACTION_SEPARATOR = ","
KEY_FIELD_COUNT = 8
RATIO_BUCKETS = 10

# Tolerance so that e.g. 0.7 * 10 lands in bucket 7, not 6.
_BUCKET_EPSILON = 1e-9


class ContextKeyError(ValueError):
    """Raised when a stored context key cannot be parsed."""


class ActionKeyError(ValueError):
    """Raised when a stored action key cannot be parsed."""


@dataclass
class LiveState:
    """
    Raw readings from the agent's sensors for one update tick.

    Callers are responsible for supplying finite values.

    Attributes:
        health, max_health: Current and maximum health
        hunger, max_hunger: Current and maximum satiation
        thirst, max_thirst: Current and maximum hydration
        x, y: World position
        nearby_enemies: Number of perceived enemies
        nearby_items: Number of perceived pickups
        nearby_npcs: Number of perceived agents
        inventory: One category per slot, None for an empty slot
        time_s: Elapsed game time in seconds
    """
    health: float = 100.0
    max_health: float = 100.0
    hunger: float = 100.0
    max_hunger: float = 100.0
    thirst: float = 100.0
    max_thirst: float = 100.0
    x: float = 0.0
    y: float = 0.0
    nearby_enemies: int = 0
    nearby_items: int = 0
    nearby_npcs: int = 0
    inventory: List[Optional[ItemCategory]] = field(default_factory=list)
    time_s: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "LiveState":
        """Build from plain data; inventory entries may be category names."""
        values = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "inventory" in values:
            values["inventory"] = [
                None if slot is None else ItemCategory(slot) if isinstance(slot, str) else slot
                for slot in values["inventory"]
            ]
        return cls(**values)


class ContextEncoder:
    """
    Builds Context snapshots from live readings.

    Quantization constants come from the memory config so the encoder and
    the similarity metric always agree on grid size.
    """

    def __init__(self, config: MemoryConfig = DEFAULT_MEMORY_CONFIG):
        self.grid_step = config.grid_step
        self.time_period_s = config.time_period_s
        self.time_bucket_s = config.time_bucket_s

    def build_context(self, state: LiveState) -> Context:
        """
        Build an immutable Context from one tick of live readings.

        Args:
            state: Live sensor readings

        Returns:
            Fully populated Context
        """
        return Context(
            health_ratio=_ratio(state.health, state.max_health),
            hunger_ratio=_ratio(state.hunger, state.max_hunger),
            thirst_ratio=_ratio(state.thirst, state.max_thirst),
            grid_x=self.quantize(state.x),
            grid_y=self.quantize(state.y),
            nearby_enemy_count=state.nearby_enemies,
            nearby_item_count=state.nearby_items,
            nearby_npc_count=state.nearby_npcs,
            has_weapon=any(slot is ItemCategory.WEAPON for slot in state.inventory),
            item_count=sum(1 for slot in state.inventory if slot is not None),
            time_phase=self.time_phase(state.time_s),
        )

    def quantize(self, world: float) -> int:
        """Map a world coordinate to its grid cell."""
        return int(round(world / self.grid_step))

    def time_phase(self, time_s: float) -> int:
        """Map elapsed game time to its time-of-day bucket."""
        return int(math.floor((time_s % self.time_period_s) / self.time_bucket_s))


def _ratio(current: float, maximum: float) -> float:
    if maximum <= 0:
        return 1.0
    return current / maximum


def ratio_bucket(ratio: float) -> int:
    """Discretize a 0-1 ratio into tenths."""
    return int(math.floor(ratio * RATIO_BUCKETS + _BUCKET_EPSILON))


def discretized_fields(context: Context) -> tuple:
    """The fields of a context that survive key encoding."""
    return (
        ratio_bucket(context.health_ratio),
        ratio_bucket(context.hunger_ratio),
        ratio_bucket(context.thirst_ratio),
        context.grid_x,
        context.grid_y,
        context.nearby_enemy_count,
        context.item_count,
        context.has_weapon,
    )


def encode_context_key(context: Context) -> str:
    """Encode a context into its canonical key."""
    return KEY_SEPARATOR.join(str(part) for part in discretized_fields(context))


def decode_context_key(key: str) -> Context:
    """
    Decode a key back into a Context.

    Ratios come back as bucket / 10; fields that are not part of the key
    come back as their defaults.

    Raises:
        ContextKeyError: If the key is truncated or corrupted
    """
    # Negative grid coordinates keep their sign after the separator split
    parts = key.split(KEY_SEPARATOR) if key else []
    if len(parts) != KEY_FIELD_COUNT:
        raise ContextKeyError(f"Expected {KEY_FIELD_COUNT} fields in context key, got {len(parts)}: {key!r}")

    try:
        health, hunger, thirst, grid_x, grid_y, enemies, items = (int(p) for p in parts[:7])
    except ValueError as e:
        raise ContextKeyError(f"Unparseable context key {key!r}: {e}") from e

    if parts[7] == "True":
        has_weapon = True
    elif parts[7] == "False":
        has_weapon = False
    else:
        raise ContextKeyError(f"Unparseable weapon flag in context key {key!r}")

    return Context(
        health_ratio=health / RATIO_BUCKETS,
        hunger_ratio=hunger / RATIO_BUCKETS,
        thirst_ratio=thirst / RATIO_BUCKETS,
        grid_x=grid_x,
        grid_y=grid_y,
        nearby_enemy_count=enemies,
        has_weapon=has_weapon,
        item_count=items,
    )


def encode_action_key(actions: Sequence[int]) -> str:
    """Encode an action vector into its canonical key."""
    return ACTION_SEPARATOR.join(str(int(a)) for a in actions)


def decode_action_key(key: str) -> ActionVector:
    """
    Decode an action key back into an action vector.

    Raises:
        ActionKeyError: If the key is empty or holds non-integer parts
    """
    if not key:
        raise ActionKeyError("Empty action key")
    try:
        return tuple(int(part) for part in key.split(ACTION_SEPARATOR))
    except ValueError as e:
        raise ActionKeyError(f"Unparseable action key {key!r}") from e
