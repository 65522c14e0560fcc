"""
Contextual experience memory for autonomous game agents.

Records what happened when an agent took an action in a situation and
uses that history to bias future action choice toward what worked and
away from what failed or killed the agent.

Key principles:
- Memory is bounded (oldest contexts evicted first)
- Old experience decays instead of being deleted
- Suggestions only advise; the agent's own policy decides
- Each agent owns its own memory; nothing is shared

Design:
- Contexts are discretized into string keys
- Similar contexts are found with a weighted similarity metric
- Best/worst actions of neighbours are combined by similarity-weighted vote
"""

from .types import (
    ActionChannel,
    ActionVector,
    ACTION_CHANNEL_SIZES,
    Context,
    ContextSuggestion,
    ItemCategory,
)
from .config import (
    ConfigError,
    MemoryConfig,
    MemoryPresets,
    SimilarityWeights,
    DEFAULT_MEMORY_CONFIG,
)
from .encoder import (
    ActionKeyError,
    ContextEncoder,
    ContextKeyError,
    LiveState,
    decode_action_key,
    decode_context_key,
    encode_action_key,
    encode_context_key,
)
from .store import ActionValue, ContextMemory, MemoryStore
from .similarity import SimilarityIndex, context_similarity
from .suggestion import SuggestionBuilder
from .decay import DecayScheduler
from .advisor import AdvicePolicy, AdviceTrace, apply_suggestion
from .persistence import MemoryPersistence
from .engine import ContextualMemory, MemoryStats

__version__ = "0.1.0"

__all__ = [
    # Data model
    "ActionChannel",
    "ActionVector",
    "ACTION_CHANNEL_SIZES",
    "Context",
    "ContextSuggestion",
    "ItemCategory",

    # Configuration
    "ConfigError",
    "MemoryConfig",
    "MemoryPresets",
    "SimilarityWeights",
    "DEFAULT_MEMORY_CONFIG",

    # Encoding
    "ActionKeyError",
    "ContextEncoder",
    "ContextKeyError",
    "LiveState",
    "decode_action_key",
    "decode_context_key",
    "encode_action_key",
    "encode_context_key",

    # Store, retrieval, aggregation
    "ActionValue",
    "ContextMemory",
    "MemoryStore",
    "SimilarityIndex",
    "context_similarity",
    "SuggestionBuilder",
    "DecayScheduler",

    # Consumers
    "AdvicePolicy",
    "AdviceTrace",
    "apply_suggestion",

    # Persistence and facade
    "MemoryPersistence",
    "ContextualMemory",
    "MemoryStats",
]
