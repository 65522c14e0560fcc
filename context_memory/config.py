"""
Configuration for the contextual experience memory.

All parameters have defaults taken from the reference agent and are
validated on construction. A store that could never hold anything, or a
decay factor that would erase or amplify rewards, is a configuration
error and fails fast.

Configs can be built programmatically or loaded from YAML/JSON files.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

DECAY_MODES = ("per_record", "interval")


class ConfigError(ValueError):
    """Raised when a MemoryConfig holds values the engine cannot run with."""


@dataclass
class SimilarityWeights:
    """
    Relative weight of each partial similarity term.

    The final score is normalized by the sum of weights, so only the
    ratios between weights matter. A weight of 0 disables its term.
    """
    health: float = 2.0
    location: float = 1.0
    enemy: float = 1.5
    item: float = 1.0

    @property
    def total(self) -> float:
        return self.health + self.location + self.enemy + self.item

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimilarityWeights":
        return cls(**{k: float(v) for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class MemoryConfig:
    """
    Configuration for one agent's contextual memory.

    Attributes:
        capacity: Maximum number of stored contexts (oldest evicted first)
        decay_factor: Multiplier applied to stored rewards on each decay tick
        decay_mode: "per_record" (decay after every N writes) or "interval"
        decay_every_n_records: Writes between decay ticks in per_record mode
        decay_interval_s: Seconds between decay ticks in interval mode
        similarity_threshold: Minimum similarity for a stored context to count
        update_interval_s: Minimum seconds between context rebuilds
        suggestion_k: Neighbours consulted by suggest()
        danger_k: Neighbours consulted by is_dangerous()
        danger_threshold: Weighted death rate above which a context is dangerous
        low_success_threshold: Average success rate below which to explore
        novelty_bonus: Exploration bonus for a situation with no neighbours
        failure_bonus_scale: Scale of the bonus for known-bad situations
        grid_step: World units per grid cell
        time_period_s: Length of the time-of-day cycle
        time_bucket_s: Length of one time-of-day bucket
        position_decay: Distance constant of the positional similarity
        count_cap: Count difference at which count similarity reaches 0
        weights: Per-term similarity weights
    """
    capacity: int = 1000
    decay_factor: float = 0.95
    decay_mode: str = "per_record"
    decay_every_n_records: int = 1
    decay_interval_s: float = 1.0

    similarity_threshold: float = 0.8
    update_interval_s: float = 1.0

    suggestion_k: int = 3
    danger_k: int = 5
    danger_threshold: float = 0.5
    low_success_threshold: float = 0.3
    novelty_bonus: float = 0.3
    failure_bonus_scale: float = 0.5

    grid_step: float = 4.0
    time_period_s: float = 300.0
    time_bucket_s: float = 60.0
    position_decay: float = 5.0
    count_cap: float = 10.0

    weights: SimilarityWeights = field(default_factory=SimilarityWeights)

    def __post_init__(self):
        if isinstance(self.weights, dict):
            self.weights = SimilarityWeights.from_dict(self.weights)
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError listing every invalid field."""
        errors = []

        if self.capacity <= 0:
            errors.append(f"capacity must be positive (got {self.capacity})")
        if not 0.0 < self.decay_factor < 1.0:
            errors.append(f"decay_factor must be in (0, 1) (got {self.decay_factor})")
        if self.decay_mode not in DECAY_MODES:
            errors.append(f"decay_mode must be one of {DECAY_MODES} (got {self.decay_mode!r})")
        if self.decay_every_n_records < 1:
            errors.append("decay_every_n_records must be >= 1")
        if self.decay_interval_s <= 0:
            errors.append("decay_interval_s must be positive")
        if not 0.0 <= self.similarity_threshold < 1.0:
            errors.append(f"similarity_threshold must be in [0, 1) (got {self.similarity_threshold})")
        if self.update_interval_s < 0:
            errors.append("update_interval_s must not be negative")
        if self.suggestion_k < 1 or self.danger_k < 1:
            errors.append("suggestion_k and danger_k must be >= 1")
        for name in ("grid_step", "time_period_s", "time_bucket_s", "position_decay", "count_cap"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")
        for name, value in self.weights.to_dict().items():
            if value < 0:
                errors.append(f"weights.{name} must not be negative")
        if self.weights.total <= 0:
            errors.append("at least one similarity weight must be positive")

        if errors:
            raise ConfigError("Invalid memory config:\n" + "\n".join(errors))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryConfig":
        """Deserialize from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def save(self, path: str) -> None:
        """Save config to a JSON or YAML file (chosen by extension)."""
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            if path.endswith((".yaml", ".yml")):
                yaml.safe_dump(self.to_dict(), f, sort_keys=False)
            else:
                json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> "MemoryConfig":
        """
        Load config from a JSON or YAML file.

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigError: If the file is not a mapping or holds invalid values
        """
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()

        if path.endswith((".yaml", ".yml")):
            data = yaml.safe_load(content)
        else:
            data = json.loads(content)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        config = cls.from_dict(data)
        logger.debug(f"Loaded memory config from {path}")
        return config


DEFAULT_MEMORY_CONFIG = MemoryConfig()


class MemoryPresets:
    """Pre-configured memory setups."""

    @staticmethod
    def default() -> MemoryConfig:
        """Reference agent defaults."""
        return MemoryConfig()

    @staticmethod
    def parity() -> MemoryConfig:
        """Decay after every recorded outcome, as the reference agent does."""
        return MemoryConfig(decay_mode="per_record", decay_every_n_records=1)

    @staticmethod
    def timed(interval_s: float = 1.0) -> MemoryConfig:
        """Decay on a fixed wall-clock period."""
        return MemoryConfig(decay_mode="interval", decay_interval_s=interval_s)

    @staticmethod
    def small(capacity: int = 100) -> MemoryConfig:
        """Small store for tests and short-lived agents."""
        return MemoryConfig(capacity=capacity)
