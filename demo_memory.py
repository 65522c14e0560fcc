#!/usr/bin/env python3
"""
Contextual Memory Demo

Walks a toy agent through a few situations and shows how recorded
outcomes turn into recommendations, avoidance and exploration signals.

Run with:
    python demo_memory.py
"""
import random
import tempfile

from context_memory import (
    ContextualMemory,
    ItemCategory,
    LiveState,
    MemoryConfig,
    MemoryPersistence,
    apply_suggestion,
)

ATTACK = (0, 0, 0, 0, 1)
FLEE = (2, 0, 0, 0, 0)
EAT = (0, 0, 1, 0, 0)


def print_header(text: str):
    """Print styled header."""
    print(f"\n{'='*70}")
    print(f"  {text}")
    print(f"{'='*70}\n")


def show(suggestion):
    print(f"  recommended: {suggestion.recommended_actions} (confidence {suggestion.confidence:.2f})")
    print(f"  avoid:       {suggestion.avoid_actions} (strength {suggestion.avoidance_strength:.2f})")
    print(f"  explore:     {suggestion.should_try_new_strategy} (bonus {suggestion.exploration_bonus:.2f})")


def demo_learned_avoidance():
    """Attacking while badly hurt keeps killing the agent."""
    print_header("Demo 1: Learned Avoidance")

    memory = ContextualMemory(MemoryConfig(), agent_id="scout")
    hurt = LiveState(health=20, x=40, y=40, nearby_enemies=3, inventory=[ItemCategory.WEAPON])
    memory.observe(hurt)

    print("Novel situation:")
    show(memory.suggest())

    for _ in range(5):
        memory.record_outcome(ATTACK, reward=-5.0, is_terminal=True)
        memory.record_outcome(FLEE, reward=2.0)

    print("\nAfter 5 deaths from attacking and 5 escapes:")
    show(memory.suggest())
    print(f"\n  dangerous here: {memory.is_dangerous()}")


def demo_similar_contexts():
    """Experience transfers to nearby, slightly different situations."""
    print_header("Demo 2: Similar Contexts")

    memory = ContextualMemory(MemoryConfig(), agent_id="forager")
    memory.observe(LiveState(hunger=10, x=0, y=0, inventory=[ItemCategory.FOOD]))
    memory.record_outcome(EAT, reward=3.0)

    nearby = memory.encoder.build_context(LiveState(hunger=15, x=6, y=-3, inventory=[ItemCategory.FOOD]))
    print("Query two cells away, slightly less hungry:")
    show(memory.suggest(nearby))


def demo_advisor():
    """A seeded policy applies the suggestion to its own candidate action."""
    print_header("Demo 3: Applying Suggestions")

    memory = ContextualMemory(MemoryConfig(), agent_id="scout")
    memory.observe(LiveState(health=20, nearby_enemies=3))
    for _ in range(5):
        memory.record_outcome(ATTACK, reward=-5.0, is_terminal=True)
        memory.record_outcome(FLEE, reward=2.0)

    rng = random.Random(42)
    suggestion = memory.suggest()
    for tick in range(5):
        actions, trace = apply_suggestion(ATTACK, suggestion, rng)
        print(f"  tick {tick}: candidate {ATTACK} -> {actions} (adopted={trace.adopted}, avoided={trace.avoided})")


def demo_persistence():
    """Memory survives a restart through snapshots."""
    print_header("Demo 4: Persistence")

    with tempfile.TemporaryDirectory() as d:
        persistence = MemoryPersistence(d)
        memory = ContextualMemory(MemoryConfig(), agent_id="scout")
        memory.observe(LiveState(health=20, nearby_enemies=3))
        memory.record_outcome(FLEE, reward=2.0)
        memory.snapshot(persistence)

        restored = ContextualMemory.restore(persistence, "scout")
        print(f"  restored contexts: {len(restored.store)}")
        show(restored.suggest(memory.current_context))


def main():
    for demo in (demo_learned_avoidance, demo_similar_contexts, demo_advisor, demo_persistence):
        demo()


if __name__ == "__main__":
    main()
