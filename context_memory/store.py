"""
Bounded memory store of per-context action outcomes.

Each stored context keeps running statistics for every action taken in
it. The store holds at most `capacity` contexts; when a new context
pushes it over, the oldest inserted context is evicted (insertion order
only, regardless of how often or how recently it was used).
"""
from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field, asdict
from typing import Deque, Dict, Iterator, List, Optional, Sequence, Tuple

from .encoder import encode_action_key, encode_context_key
from .types import Context

logger = logging.getLogger(__name__)


@dataclass
class ActionValue:
    """
    Outcome statistics for one action in one context.

    Only created together with its first recorded outcome, so count is
    never zero.

    Attributes:
        count: Times this action was taken
        cumulative_reward: Sum of (decayed) rewards
        average_reward: cumulative_reward / count
        terminal_count: Times this action ended the episode
    """
    count: int = 0
    cumulative_reward: float = 0.0
    average_reward: float = 0.0
    terminal_count: int = 0

    def record(self, reward: float, is_terminal: bool) -> None:
        self.count += 1
        self.cumulative_reward += reward
        self.average_reward = self.cumulative_reward / self.count
        if is_terminal:
            self.terminal_count += 1

    def decay(self, factor: float) -> None:
        self.cumulative_reward *= factor
        self.average_reward *= factor

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "ActionValue":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class ContextMemory:
    """
    Everything remembered about one context.

    Best/worst actions and the rates are derived from action_values and
    recomputed on every write.

    Attributes:
        action_values: Action key -> statistics, in first-seen order
        best_action: Key of the action with the highest average reward
        best_action_value: That action's average reward
        worst_action: Key of the action with the lowest average reward
        worst_action_value: That action's average reward
        success_rate: Actions with positive average reward / total invocations
        death_rate: Terminal outcomes / total invocations
    """
    action_values: Dict[str, ActionValue] = field(default_factory=dict)
    best_action: Optional[str] = None
    best_action_value: float = 0.0
    worst_action: Optional[str] = None
    worst_action_value: float = 0.0
    success_rate: float = 0.0
    death_rate: float = 0.0

    @property
    def total_count(self) -> int:
        return sum(v.count for v in self.action_values.values())

    def refresh(self) -> None:
        """Recompute best/worst actions and rates from action_values."""
        best_value = -math.inf
        worst_value = math.inf
        # Strict comparisons keep the first-seen action on ties
        for action_key, value in self.action_values.items():
            if value.average_reward > best_value:
                best_value = value.average_reward
                self.best_action = action_key
                self.best_action_value = best_value
            if value.average_reward < worst_value:
                worst_value = value.average_reward
                self.worst_action = action_key
                self.worst_action_value = worst_value

        if not self.action_values:
            self.success_rate = 0.0
            self.death_rate = 0.0
            return

        total = self.total_count
        positive = sum(1 for v in self.action_values.values() if v.average_reward > 0)
        self.success_rate = positive / total if total > 0 else 0.0

        terminal = sum(v.terminal_count for v in self.action_values.values())
        self.death_rate = terminal / total if total > 0 else 0.0

    def decay(self, factor: float) -> None:
        for value in self.action_values.values():
            value.decay(factor)
        # best/worst values stay cached until the next write to this context

    def to_dict(self) -> Dict:
        return {
            "action_values": {k: v.to_dict() for k, v in self.action_values.items()},
            "best_action": self.best_action,
            "best_action_value": self.best_action_value,
            "worst_action": self.worst_action,
            "worst_action_value": self.worst_action_value,
            "success_rate": self.success_rate,
            "death_rate": self.death_rate,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ContextMemory":
        memory = cls(
            action_values={
                k: ActionValue.from_dict(v)
                for k, v in data.get("action_values", {}).items()
            },
        )
        memory.refresh()
        return memory


class MemoryStore:
    """
    Bounded map from context key to ContextMemory.

    All mutation goes through record_outcome, decay_all and clear. The
    store is owned by a single agent and is not thread-safe.

    Configuration:
        capacity: Maximum number of contexts kept (must be positive)
    """

    def __init__(self, capacity: int = 1000):
        if capacity <= 0:
            raise ValueError(f"MemoryStore capacity must be positive (got {capacity})")
        self.capacity = capacity
        self._memories: Dict[str, ContextMemory] = {}
        self._order: Deque[str] = deque()
        self.eviction_count = 0

    def __len__(self) -> int:
        return len(self._memories)

    def __contains__(self, key: object) -> bool:
        return key in self._memories

    def record_outcome(
        self,
        context: Context,
        actions: Sequence[int],
        reward: float,
        is_terminal: bool = False,
    ) -> ActionValue:
        """
        Record the outcome of taking `actions` in `context`.

        Args:
            context: Situation the action was taken in
            actions: Action vector that was taken
            reward: Scalar reward; negative means the action was penalized
            is_terminal: Whether the action ended the agent's episode

        Returns:
            Updated statistics for this (context, action) pair

        Raises:
            ValueError: If reward is NaN or infinite
        """
        if not math.isfinite(reward):
            raise ValueError(f"Reward must be finite (got {reward})")

        context_key = encode_context_key(context)
        action_key = encode_action_key(actions)

        memory = self._memories.get(context_key)
        if memory is None:
            memory = ContextMemory()
            self._memories[context_key] = memory
            self._order.append(context_key)
            if len(self._memories) > self.capacity:
                self._evict_oldest()

        value = memory.action_values.get(action_key)
        if value is None:
            value = ActionValue()
            memory.action_values[action_key] = value

        value.record(reward, is_terminal)
        memory.refresh()
        return value

    def _evict_oldest(self) -> None:
        oldest = self._order.popleft()
        del self._memories[oldest]
        self.eviction_count += 1
        logger.debug(f"Evicted oldest context {oldest} (capacity {self.capacity})")

    def decay_all(self, factor: float) -> None:
        """
        Shrink every stored reward toward zero. Counts are left untouched.

        Args:
            factor: Multiplier in (0, 1)
        """
        if not 0.0 < factor < 1.0:
            raise ValueError(f"Decay factor must be in (0, 1) (got {factor})")
        for memory in self._memories.values():
            memory.decay(factor)

    def clear(self) -> None:
        """Forget everything (new level or respawn)."""
        self._memories.clear()
        self._order.clear()

    def get(self, context_key: str) -> Optional[ContextMemory]:
        """Get the memory for a context key, if stored."""
        return self._memories.get(context_key)

    def get_for_context(self, context: Context) -> Optional[ContextMemory]:
        """Get the memory for a context, if stored."""
        return self._memories.get(encode_context_key(context))

    def keys(self) -> List[str]:
        """Stored context keys, oldest first."""
        return list(self._order)

    def items(self) -> Iterator[Tuple[str, ContextMemory]]:
        """Iterate (key, memory) pairs, oldest first."""
        for key in self._order:
            yield key, self._memories[key]

    def to_dict(self) -> Dict:
        """Serialize the store, preserving eviction order."""
        return {
            "capacity": self.capacity,
            "eviction_count": self.eviction_count,
            "contexts": [
                {"key": key, "memory": memory.to_dict()}
                for key, memory in self.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict, capacity: Optional[int] = None) -> "MemoryStore":
        """
        Rebuild a store from to_dict() output.

        Keys are restored verbatim. If the snapshot holds more contexts than
        the capacity, the oldest ones are dropped.
        """
        store = cls(capacity=capacity if capacity is not None else data.get("capacity", 1000))
        store.eviction_count = data.get("eviction_count", 0)
        for entry in data.get("contexts", []):
            key = entry["key"]
            if key in store._memories:
                continue
            store._memories[key] = ContextMemory.from_dict(entry.get("memory", {}))
            store._order.append(key)
            if len(store._memories) > store.capacity:
                store._evict_oldest()
        return store
