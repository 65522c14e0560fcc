"""
Tests for suggestion building.
"""
import pytest

from context_memory.config import MemoryConfig
from context_memory.encoder import decode_context_key, encode_context_key
from context_memory.engine import ContextualMemory
from context_memory.similarity import SimilarityIndex, context_similarity
from context_memory.store import MemoryStore
from context_memory.suggestion import SuggestionBuilder
from context_memory.types import Context, ContextSuggestion

ACTION_X = (1, 0, 0, 0, 1)
ACTION_Y = (3, 1, 0, 0, 0)


def make_builder(config: MemoryConfig = None) -> SuggestionBuilder:
    config = config or MemoryConfig()
    store = MemoryStore(capacity=config.capacity)
    return SuggestionBuilder(store, SimilarityIndex(store, config), config)


class TestLearnedAvoidance:
    """Bad actions are avoided, good ones recommended."""

    def test_scenario(self):
        memory = ContextualMemory(MemoryConfig(), agent_id="test")
        context_a = Context(health_ratio=1.0, hunger_ratio=0.8, thirst_ratio=0.6, grid_x=5, grid_y=5)

        for _ in range(5):
            memory.record_outcome(ACTION_X, reward=-5.0, is_terminal=True, context=context_a)
        for _ in range(5):
            memory.record_outcome(ACTION_Y, reward=2.0, is_terminal=False, context=context_a)

        suggestion = memory.suggest(context_a)

        assert suggestion.avoid_actions == ACTION_X
        assert suggestion.avoidance_strength > 0
        assert suggestion.recommended_actions == ACTION_Y
        assert suggestion.confidence > 0
        # One positive action over ten invocations
        assert memory.store.get_for_context(context_a).success_rate == pytest.approx(0.1)
        assert suggestion.should_try_new_strategy is True
        assert suggestion.exploration_bonus == pytest.approx(0.45)
        assert suggestion.neighbor_count == 1

    def test_danger_flag(self):
        """Death rate above one half marks the situation as dangerous."""
        memory = ContextualMemory(MemoryConfig())
        context_a = Context()

        for _ in range(5):
            memory.record_outcome(ACTION_X, reward=-5.0, is_terminal=True, context=context_a)
        for _ in range(5):
            memory.record_outcome(ACTION_Y, reward=2.0, context=context_a)

        # 5 deaths in 10 invocations is not above the threshold
        assert memory.is_dangerous(context_a) is False

        memory.record_outcome(ACTION_X, reward=-5.0, is_terminal=True, context=context_a)
        assert memory.is_dangerous(context_a) is True

    def test_danger_without_neighbours(self):
        builder = make_builder()
        assert builder.danger_score(Context()) == 0.0
        assert builder.is_dangerous(Context()) is False


class TestNovelty:
    """No similar experience means explore."""

    def test_empty_memory(self):
        builder = make_builder()
        suggestion = builder.suggest(Context())

        assert suggestion.should_try_new_strategy is True
        assert suggestion.recommended_actions is None
        assert suggestion.avoid_actions is None
        assert suggestion.exploration_bonus == pytest.approx(0.3)
        assert suggestion.is_novel

    def test_only_dissimilar_contexts(self):
        builder = make_builder()
        builder.store.record_outcome(
            Context(health_ratio=0.0, grid_x=100), ACTION_Y, reward=3.0
        )

        suggestion = builder.suggest(Context(health_ratio=1.0))

        assert suggestion.should_try_new_strategy is True
        assert suggestion.recommended_actions is None

    def test_custom_novelty_bonus(self):
        builder = make_builder(MemoryConfig(novelty_bonus=0.1))
        assert builder.suggest(Context()).exploration_bonus == pytest.approx(0.1)


class TestAggregation:
    """Similarity-weighted voting across neighbours."""

    def test_weighted_vote_across_neighbours(self):
        builder = make_builder()
        first = Context()
        second = Context(grid_x=1)
        builder.store.record_outcome(first, (0,), reward=0.4)
        builder.store.record_outcome(second, (1,), reward=0.6)

        suggestion = builder.suggest(Context())

        s2 = context_similarity(Context(), decode_context_key(encode_context_key(second)))
        assert suggestion.recommended_actions == (1,)
        assert suggestion.confidence == pytest.approx(0.6 * s2 / 2)
        assert suggestion.neighbor_count == 2

    def test_votes_for_same_action_add_up(self):
        builder = make_builder()
        builder.store.record_outcome(Context(), (0,), reward=0.5)
        builder.store.record_outcome(Context(grid_x=1), (0,), reward=0.5)
        builder.store.record_outcome(Context(grid_x=2), (1,), reward=0.9)

        suggestion = builder.suggest(Context())

        assert suggestion.recommended_actions == (0,)

    def test_respects_k(self):
        builder = make_builder(MemoryConfig(suggestion_k=1))
        builder.store.record_outcome(Context(), (0,), reward=0.5)
        builder.store.record_outcome(Context(grid_x=1), (1,), reward=0.9)

        suggestion = builder.suggest(Context())

        assert suggestion.neighbor_count == 1
        assert suggestion.recommended_actions == (0,)

    def test_confidence_is_clamped(self):
        builder = make_builder()
        builder.store.record_outcome(Context(), (0,), reward=50.0)
        builder.store.record_outcome(Context(), (1,), reward=-50.0)

        suggestion = builder.suggest(Context())

        assert suggestion.confidence == 1.0
        assert suggestion.avoidance_strength == 1.0

    def test_low_success_explores(self):
        """Everything failed nearby: explore with a larger bonus."""
        builder = make_builder()
        builder.store.record_outcome(Context(), (0,), reward=-1.0)
        builder.store.record_outcome(Context(), (1,), reward=-2.0)

        suggestion = builder.suggest(Context())

        assert suggestion.should_try_new_strategy is True
        assert suggestion.exploration_bonus == pytest.approx(0.5)
        assert suggestion.recommended_actions == (0,)
        assert suggestion.confidence == 0.0
        assert suggestion.avoid_actions == (1,)

    def test_single_action_context(self):
        """The only action tried is both best and worst."""
        builder = make_builder()
        builder.store.record_outcome(Context(), (2, 2), reward=1.0)

        suggestion = builder.suggest(Context())

        assert suggestion.recommended_actions == (2, 2)
        assert suggestion.avoid_actions == (2, 2)
        assert suggestion.avoidance_strength == 0.0
        assert suggestion.should_try_new_strategy is False

    def test_unparseable_action_dropped(self):
        key = encode_context_key(Context())
        store = MemoryStore.from_dict({
            "capacity": 5,
            "contexts": [
                {"key": key, "memory": {"action_values": {"x,y": {"count": 1, "cumulative_reward": 1.0, "average_reward": 1.0}}}},
            ],
        })
        config = MemoryConfig()
        builder = SuggestionBuilder(store, SimilarityIndex(store, config), config)

        suggestion = builder.suggest(Context())

        assert suggestion.recommended_actions is None
        assert suggestion.avoid_actions is None
        assert suggestion.confidence == 0.0
        assert suggestion.neighbor_count == 1


class TestDeterminism:
    """suggest() has no hidden randomness."""

    def test_repeated_calls_identical(self):
        builder = make_builder()
        for i in range(6):
            builder.store.record_outcome(Context(grid_x=i % 3), (i % 2, 1), reward=i - 2.5, is_terminal=i == 4)

        first = builder.suggest(Context(health_ratio=0.95))
        second = builder.suggest(Context(health_ratio=0.95))

        assert first == second
        assert isinstance(first, ContextSuggestion)

    def test_to_dict(self):
        builder = make_builder()
        builder.store.record_outcome(Context(), (1, 2), reward=1.0)
        data = builder.suggest(Context()).to_dict()
        assert data["recommended_actions"] == [1, 2]
        assert data["neighbor_count"] == 1
