import pytest

from mergecraft.clock import ManualClock
from mergecraft.events import CraftCancelled, EventQueue, RecipeUnlocked
from mergecraft.rng import RandomSource


def test_event_queue_drains_in_order():
    q = EventQueue()
    q.append(RecipeUnlocked("a"))
    q.append(CraftCancelled("b"))
    q.append(RecipeUnlocked("c"))
    assert len(q) == 3
    assert q.of_type(RecipeUnlocked) == [RecipeUnlocked("a"), RecipeUnlocked("c")]
    assert q.peek()[1] == CraftCancelled("b")
    assert q.drain() == [RecipeUnlocked("a"), CraftCancelled("b"), RecipeUnlocked("c")]
    assert q.drain() == []


def test_manual_clock_is_monotonic():
    clock = ManualClock(10.0)
    assert clock.advance(2.5) == 12.5
    clock.set(20.0)
    assert clock.now() == 20.0
    with pytest.raises(ValueError):
        clock.set(19.0)
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_seeded_random_source_is_deterministic():
    a, b = RandomSource(seed=42), RandomSource(seed=42)
    assert [a.randrange(100) for _ in range(10)] == [b.randrange(100) for _ in range(10)]
    assert 0.0 <= a.random() < 1.0
    assert a.choice(["x"]) == "x"
    with pytest.raises(ValueError):
        a.choice([])
    with pytest.raises(ValueError):
        a.randrange(0)
