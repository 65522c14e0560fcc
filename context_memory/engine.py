"""
Per-agent contextual memory engine.

Wires the context encoder, memory store, similarity index, suggestion
builder and decay scheduler behind one object owned by a single agent.

Write path:  record_outcome(actions, reward, is_terminal)
Read path:   suggest() / is_dangerous()

Both paths share the store. A write is visible to the very next read.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional, Sequence

from .config import MemoryConfig
from .decay import DecayScheduler
from .encoder import ContextEncoder, LiveState, encode_context_key
from .logging_config import log_event
from .persistence import MemoryPersistence
from .similarity import SimilarityIndex
from .store import ActionValue, MemoryStore
from .suggestion import SuggestionBuilder
from .types import Context, ContextSuggestion

logger = logging.getLogger(__name__)


@dataclass
class MemoryStats:
    """Counters for one engine instance."""
    records: int = 0
    ignored_records: int = 0
    suggestions: int = 0
    novel_suggestions: int = 0
    clears: int = 0
    evictions: int = 0
    decays: int = 0
    skipped_keys: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ContextualMemory:
    """
    Contextual experience memory for one agent.

    Not thread-safe: the owning agent must call it from its own update loop.

    Example:
        >>> memory = ContextualMemory(MemoryConfig(), agent_id="scout")
        >>> memory.update(live_state)
        >>> memory.record_outcome((1, 0, 0, 0, 1), reward=0.4)
        >>> advice = memory.suggest()
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        agent_id: str = "agent",
    ):
        self.config = config or MemoryConfig()
        self.clock = clock
        self.agent_id = agent_id

        self.encoder = ContextEncoder(self.config)
        self.store = MemoryStore(capacity=self.config.capacity)
        self.index = SimilarityIndex(self.store, self.config)
        self.builder = SuggestionBuilder(self.store, self.index, self.config)
        self.scheduler = DecayScheduler(self.store, self.config, clock=clock)

        self.current_context: Optional[Context] = None
        self._last_update: Optional[float] = None
        self.stats = MemoryStats()

    def update(self, state: LiveState, now: Optional[float] = None) -> bool:
        """
        Per-frame hook. Rebuilds the current context at most once per
        update interval and advances the decay timer.

        Returns:
            True if the current context was rebuilt
        """
        now = self.clock() if now is None else now
        if self.scheduler.tick(now):
            self.stats.decays += 1

        if self._last_update is not None and now - self._last_update <= self.config.update_interval_s:
            return False

        self.current_context = self.encoder.build_context(state)
        self._last_update = now
        return True

    def observe(self, state: LiveState) -> Context:
        """Rebuild the current context immediately."""
        self.current_context = self.encoder.build_context(state)
        self._last_update = self.clock()
        return self.current_context

    def record_outcome(
        self,
        actions: Sequence[int],
        reward: float,
        is_terminal: bool = False,
        context: Optional[Context] = None,
    ) -> Optional[ActionValue]:
        """
        Record what happened after taking `actions`.

        Args:
            actions: Action vector that was executed
            reward: Shaped scalar reward for the action
            is_terminal: Whether the episode ended (e.g. the agent died)
            context: Context to record against (defaults to current context)

        Returns:
            Updated statistics, or None if there is no context yet
        """
        context = context or self.current_context
        if context is None:
            self.stats.ignored_records += 1
            logger.debug(f"[{self.agent_id}] No context yet, outcome ignored")
            return None

        evictions_before = self.store.eviction_count
        value = self.store.record_outcome(context, actions, reward, is_terminal)
        self.stats.records += 1

        if self.store.eviction_count > evictions_before:
            self.stats.evictions += self.store.eviction_count - evictions_before
            log_event(
                logger,
                "evict",
                "Memory full, evicted oldest context",
                agent_id=self.agent_id,
                level=logging.DEBUG,
                size=len(self.store),
            )

        if is_terminal:
            log_event(
                logger,
                "terminal",
                f"Terminal outcome recorded (reward {reward:.3f})",
                agent_id=self.agent_id,
                level=logging.DEBUG,
                context_key=encode_context_key(context),
            )

        if self.scheduler.on_record():
            self.stats.decays += 1
        return value

    def suggest(self, context: Optional[Context] = None) -> ContextSuggestion:
        """Suggestion for `context` (defaults to the current context)."""
        context = context or self.current_context
        self.stats.suggestions += 1
        if context is None:
            self.stats.novel_suggestions += 1
            return self.builder.novel_suggestion()

        skipped_before = self.index.skipped_keys
        suggestion = self.builder.suggest(context)
        self.stats.skipped_keys += self.index.skipped_keys - skipped_before
        if suggestion.is_novel:
            self.stats.novel_suggestions += 1
        return suggestion

    def is_dangerous(self, context: Optional[Context] = None) -> bool:
        """Whether similar situations frequently ended the episode."""
        context = context or self.current_context
        if context is None:
            return False
        skipped_before = self.index.skipped_keys
        dangerous = self.builder.is_dangerous(context)
        self.stats.skipped_keys += self.index.skipped_keys - skipped_before
        return dangerous

    def clear(self) -> None:
        """Forget all experience (new level or respawn)."""
        size = len(self.store)
        self.store.clear()
        self.scheduler.reset()
        self.current_context = None
        self._last_update = None
        self.stats.clears += 1
        log_event(logger, "clear", f"Cleared {size} contexts", agent_id=self.agent_id)

    def debug_snapshot(self) -> Dict[str, Any]:
        """
        Read-only view of the memory for debug tooling.

        Returns plain data; changing it has no effect on the engine.
        """
        return {
            "agent_id": self.agent_id,
            "size": len(self.store),
            "capacity": self.store.capacity,
            "evictions": self.store.eviction_count,
            "decays": self.scheduler.decay_count,
            "skipped_keys": self.index.skipped_keys,
            "stats": self.stats.to_dict(),
            "current_context": self.current_context.to_dict() if self.current_context else None,
            "contexts": [
                {
                    "key": key,
                    "actions": len(memory.action_values),
                    "invocations": memory.total_count,
                    "best_action": memory.best_action,
                    "best_action_value": memory.best_action_value,
                    "worst_action": memory.worst_action,
                    "worst_action_value": memory.worst_action_value,
                    "success_rate": memory.success_rate,
                    "death_rate": memory.death_rate,
                }
                for key, memory in self.store.items()
            ],
        }

    def snapshot(self, persistence: MemoryPersistence) -> bool:
        """Save this agent's store and config."""
        return persistence.snapshot(self.agent_id, self.store, self.config)

    @classmethod
    def restore(
        cls,
        persistence: MemoryPersistence,
        agent_id: str,
        config: Optional[MemoryConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "ContextualMemory":
        """
        Build an engine from a saved snapshot.

        An explicit config wins over the saved one. Falls back to an empty
        memory when no usable snapshot exists.
        """
        saved_config, store = persistence.restore_store(
            agent_id,
            capacity=config.capacity if config else None,
        )
        engine = cls(config or saved_config, clock=clock, agent_id=agent_id)
        if store is not None:
            engine.attach_store(store)
        return engine

    def attach_store(self, store: MemoryStore) -> None:
        """Replace the store, e.g. with one rebuilt from a snapshot."""
        self.store = store
        self.index.store = store
        self.builder.store = store
        self.scheduler.store = store
