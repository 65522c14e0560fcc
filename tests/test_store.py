"""
Tests for the bounded memory store.
"""
import math
import random

import pytest

from context_memory.encoder import encode_context_key
from context_memory.store import ActionValue, ContextMemory, MemoryStore
from context_memory.types import Context


def ctx(i: int) -> Context:
    """A context with a distinct key per i."""
    return Context(grid_x=i * 100)


class TestRecordOutcome:
    """Test the write path."""

    def test_creates_entries(self):
        store = MemoryStore(capacity=10)
        value = store.record_outcome(ctx(0), (1, 0, 0, 0, 0), reward=0.5)

        assert len(store) == 1
        assert value.count == 1
        assert value.cumulative_reward == 0.5
        assert value.average_reward == 0.5
        assert value.terminal_count == 0

    def test_accumulates_same_action(self):
        store = MemoryStore(capacity=10)
        store.record_outcome(ctx(0), (1, 0), reward=1.0)
        value = store.record_outcome(ctx(0), (1, 0), reward=-3.0, is_terminal=True)

        assert value.count == 2
        assert value.cumulative_reward == -2.0
        assert value.average_reward == -1.0
        assert value.terminal_count == 1

    def test_average_invariant_after_every_write(self):
        """average_reward == cumulative_reward / count after each write."""
        rng = random.Random(3)
        store = MemoryStore(capacity=50)
        for _ in range(300):
            context = ctx(rng.randrange(5))
            actions = (rng.randrange(3), rng.randrange(2))
            value = store.record_outcome(context, actions, reward=rng.uniform(-5, 5))
            assert value.average_reward == pytest.approx(value.cumulative_reward / value.count)

        for _, memory in store.items():
            for value in memory.action_values.values():
                assert value.count > 0
                assert value.average_reward == pytest.approx(value.cumulative_reward / value.count)

    def test_best_worst_and_rates(self):
        store = MemoryStore(capacity=10)
        store.record_outcome(ctx(0), (0,), reward=1.0)
        store.record_outcome(ctx(0), (1,), reward=-2.0, is_terminal=True)
        store.record_outcome(ctx(0), (2,), reward=0.5)

        memory = store.get_for_context(ctx(0))
        assert memory.best_action == "0"
        assert memory.best_action_value == 1.0
        assert memory.worst_action == "1"
        assert memory.worst_action_value == -2.0
        assert memory.success_rate == pytest.approx(2 / 3)
        assert memory.death_rate == pytest.approx(1 / 3)

    def test_success_rate_counts_invocations(self):
        store = MemoryStore(capacity=10)
        for _ in range(3):
            store.record_outcome(ctx(0), (0,), reward=1.0)
        store.record_outcome(ctx(0), (1,), reward=-1.0)

        memory = store.get_for_context(ctx(0))
        assert memory.success_rate == pytest.approx(1 / 4)

    def test_single_action_is_best_and_worst(self):
        store = MemoryStore(capacity=10)
        store.record_outcome(ctx(0), (3, 1), reward=2.0)

        memory = store.get_for_context(ctx(0))
        assert memory.best_action == memory.worst_action == "3,1"

    def test_ties_keep_first_seen_action(self):
        store = MemoryStore(capacity=10)
        store.record_outcome(ctx(0), (0,), reward=1.0)
        store.record_outcome(ctx(0), (1,), reward=1.0)

        memory = store.get_for_context(ctx(0))
        assert memory.best_action == "0"
        assert memory.worst_action == "0"

    def test_negative_rewards_are_kept(self):
        store = MemoryStore(capacity=10)
        store.record_outcome(ctx(0), (0,), reward=-100.0)
        assert len(store) == 1
        assert store.get_for_context(ctx(0)).success_rate == 0.0

    @pytest.mark.parametrize("reward", [math.nan, math.inf, -math.inf])
    def test_non_finite_reward_rejected(self, reward):
        store = MemoryStore(capacity=10)
        with pytest.raises(ValueError):
            store.record_outcome(ctx(0), (0,), reward=reward)
        assert len(store) == 0


class TestEviction:
    """Test capacity bounds and oldest-first eviction."""

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            MemoryStore(capacity=0)
        with pytest.raises(ValueError):
            MemoryStore(capacity=-3)

    def test_capacity_two_keeps_last_two(self):
        """K1, K2, K3 inserted: only K2 and K3 remain."""
        store = MemoryStore(capacity=2)
        for i in (1, 2, 3):
            store.record_outcome(ctx(i), (0,), reward=1.0)

        assert store.keys() == [encode_context_key(ctx(2)), encode_context_key(ctx(3))]
        assert encode_context_key(ctx(1)) not in store
        assert store.eviction_count == 1

    def test_bound_after_overflow(self):
        capacity, extra = 5, 4
        store = MemoryStore(capacity=capacity)
        for i in range(capacity + extra):
            store.record_outcome(ctx(i), (0,), reward=0.1)

        assert len(store) == capacity
        assert store.keys() == [encode_context_key(ctx(i)) for i in range(extra, capacity + extra)]

    def test_eviction_ignores_usage(self):
        """Writing to an old context again does not protect it."""
        store = MemoryStore(capacity=2)
        store.record_outcome(ctx(1), (0,), reward=1.0)
        store.record_outcome(ctx(2), (0,), reward=1.0)
        store.record_outcome(ctx(1), (1,), reward=5.0)
        store.record_outcome(ctx(3), (0,), reward=1.0)

        assert encode_context_key(ctx(1)) not in store
        assert len(store) == 2

    def test_existing_key_does_not_grow_store(self):
        store = MemoryStore(capacity=1)
        for _ in range(10):
            store.record_outcome(ctx(0), (0,), reward=1.0)
        assert len(store) == 1
        assert store.eviction_count == 0


class TestDecay:
    """Test in-place decay."""

    def test_decay_shrinks_rewards_not_counts(self):
        rng = random.Random(11)
        store = MemoryStore(capacity=20)
        for _ in range(100):
            store.record_outcome(ctx(rng.randrange(4)), (rng.randrange(3),), reward=rng.uniform(-3, 3))

        before = {
            (key, action): (value.count, value.average_reward, value.terminal_count)
            for key, memory in store.items()
            for action, value in memory.action_values.items()
        }

        store.decay_all(0.9)

        for key, memory in store.items():
            for action, value in memory.action_values.items():
                count, average, terminal = before[(key, action)]
                assert value.count == count
                assert value.terminal_count == terminal
                assert abs(value.average_reward) <= abs(average)
                assert value.average_reward == pytest.approx(value.cumulative_reward / value.count)

    def test_decay_leaves_cached_best_and_worst(self):
        store = MemoryStore(capacity=5)
        store.record_outcome(ctx(0), (0,), reward=2.0)
        store.record_outcome(ctx(0), (1,), reward=-4.0)

        store.decay_all(0.5)

        memory = store.get_for_context(ctx(0))
        assert memory.best_action == "0"
        assert memory.best_action_value == pytest.approx(2.0)
        assert memory.worst_action_value == pytest.approx(-4.0)

        # The next write to the context refreshes them from the decayed averages
        store.record_outcome(ctx(0), (2,), reward=0.0)
        assert memory.best_action_value == pytest.approx(1.0)
        assert memory.worst_action_value == pytest.approx(-2.0)

    @pytest.mark.parametrize("factor", [0.0, 1.0, 1.5, -0.5])
    def test_invalid_factor(self, factor):
        store = MemoryStore(capacity=5)
        with pytest.raises(ValueError):
            store.decay_all(factor)


class TestClearAndSerialization:
    """Test lifecycle and to_dict/from_dict."""

    def test_clear(self):
        store = MemoryStore(capacity=5)
        for i in range(3):
            store.record_outcome(ctx(i), (0,), reward=1.0)

        store.clear()

        assert len(store) == 0
        assert store.keys() == []
        # Eviction queue is empty too: new inserts start fresh
        for i in range(5):
            store.record_outcome(ctx(i + 10), (0,), reward=1.0)
        assert len(store) == 5

    def test_round_trip_preserves_order_and_stats(self):
        store = MemoryStore(capacity=10)
        for i in range(4):
            store.record_outcome(ctx(i), (i, 1), reward=float(i) - 1.5, is_terminal=i == 0)

        restored = MemoryStore.from_dict(store.to_dict())

        assert restored.keys() == store.keys()
        assert restored.capacity == 10
        for key, memory in store.items():
            other = restored.get(key)
            assert other.best_action == memory.best_action
            assert other.death_rate == memory.death_rate
            assert other.action_values == memory.action_values

    def test_from_dict_with_smaller_capacity_drops_oldest(self):
        store = MemoryStore(capacity=10)
        for i in range(4):
            store.record_outcome(ctx(i), (0,), reward=1.0)

        restored = MemoryStore.from_dict(store.to_dict(), capacity=2)

        assert restored.keys() == store.keys()[2:]

    def test_action_value_from_dict_ignores_unknown(self):
        value = ActionValue.from_dict({"count": 2, "cumulative_reward": 1.0, "average_reward": 0.5, "junk": 1})
        assert value.count == 2

    def test_empty_context_memory_refresh(self):
        memory = ContextMemory()
        memory.refresh()
        assert memory.best_action is None
        assert memory.success_rate == 0.0
        assert memory.death_rate == 0.0
