"""Tests for the seeded Alea generator."""

import pytest
from py_geology.core.alea_prng import AleaPRNG


class TestAleaPRNG:
    """Test the seeded random source."""

    def test_same_seed_same_sequence(self):
        a = AleaPRNG("42")
        b = AleaPRNG("42")
        assert [a.random() for _ in range(50)] == [b.random() for _ in range(50)]

    def test_different_seeds_differ(self):
        a = AleaPRNG("42")
        b = AleaPRNG("43")
        assert [a.random() for _ in range(10)] != [b.random() for _ in range(10)]

    def test_int_and_string_seed_agree(self):
        """Seeds are mashed as strings, so 42 and "42" are the same world."""
        assert AleaPRNG(42).random() == AleaPRNG("42").random()

    def test_random_in_unit_interval(self):
        prng = AleaPRNG("range")
        for _ in range(1000):
            value = prng.random()
            assert 0.0 <= value < 1.0

    def test_randint_inclusive_bounds(self):
        prng = AleaPRNG("dice")
        values = {prng.randint(1, 6) for _ in range(2000)}
        assert values == {1, 2, 3, 4, 5, 6}

    def test_uniform_bounds(self):
        prng = AleaPRNG("uniform")
        for _ in range(500):
            assert -0.25 <= prng.uniform(-0.25, 0.25) < 0.25

    def test_chance_zero_consumes_no_draw(self):
        prng = AleaPRNG("chance")
        assert prng.chance(0.0) is False
        assert prng.chance(-1.0) is False
        assert prng.call_count == 0

    def test_chance_one_always_fires(self):
        prng = AleaPRNG("chance")
        assert all(prng.chance(1.0) for _ in range(20))
        assert prng.call_count == 0

    def test_chance_frequency(self):
        prng = AleaPRNG("frequency")
        hits = sum(prng.chance(0.25) for _ in range(4000))
        assert 800 < hits < 1200

    def test_choice_empty_raises(self):
        with pytest.raises(IndexError):
            AleaPRNG("empty").choice([])

    def test_choice_returns_member(self):
        prng = AleaPRNG("choice")
        items = ["a", "b", "c"]
        for _ in range(30):
            assert prng.choice(items) in items

    def test_derive_is_named_substream(self):
        parent = AleaPRNG("world")
        child = parent.derive("noise")
        assert child.random() == AleaPRNG("world:noise").random()
        # Deriving does not advance the parent
        assert parent.call_count == 0
