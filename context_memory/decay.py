"""
Decay scheduler for stored experience.

Fires MemoryStore.decay_all on a fixed schedule so old rewards lose
influence without being deleted. Two schedules are supported:
- per_record: every N recorded outcomes (N=1 decays after every write)
- interval: at most once per fixed wall-clock period
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .config import MemoryConfig, DEFAULT_MEMORY_CONFIG
from .store import MemoryStore

logger = logging.getLogger(__name__)


class DecayScheduler:
    """
    Timer that applies one global decay factor to the whole store.

    The owning agent calls on_record() after every write and tick() from its
    update loop; which of the two actually fires depends on the mode.
    """

    def __init__(
        self,
        store: MemoryStore,
        config: MemoryConfig = DEFAULT_MEMORY_CONFIG,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.decay_factor = config.decay_factor
        self.mode = config.decay_mode
        self.every_n_records = config.decay_every_n_records
        self.interval_s = config.decay_interval_s
        self.clock = clock

        self.records_since_decay = 0
        self.last_decay_time: Optional[float] = None
        self.decay_count = 0

    def on_record(self) -> bool:
        """Notify the scheduler of one recorded outcome. Returns True if decay fired."""
        if self.mode != "per_record":
            return False
        self.records_since_decay += 1
        if self.records_since_decay >= self.every_n_records:
            self.records_since_decay = 0
            self._fire()
            return True
        return False

    def tick(self, now: Optional[float] = None) -> bool:
        """Advance the wall-clock timer. Returns True if decay fired."""
        if self.mode != "interval":
            return False
        now = self.clock() if now is None else now
        if self.last_decay_time is None:
            # First tick starts the period
            self.last_decay_time = now
            return False
        if now - self.last_decay_time >= self.interval_s:
            self.last_decay_time = now
            self._fire()
            return True
        return False

    def reset(self) -> None:
        self.records_since_decay = 0
        self.last_decay_time = None

    def _fire(self) -> None:
        self.store.decay_all(self.decay_factor)
        self.decay_count += 1
        logger.debug(f"Decayed {len(self.store)} contexts by {self.decay_factor}")
