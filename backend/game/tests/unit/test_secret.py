import random

from game.logic.secret import generate_secret
from game.logic.settings import CODE_LENGTH
from game.logic.validation import validate_guess
from game.tests.conftest import FixedSecretRandom


class TestGenerateSecret:
    def test_secret_is_valid_code(self):
        for seed in range(200):
            secret = generate_secret(random.Random(seed))
            assert len(secret) == CODE_LENGTH
            assert validate_guess(secret) is None

    def test_secret_never_starts_with_zero(self):
        for seed in range(500):
            assert not generate_secret(random.Random(seed)).startswith("0")

    def test_default_source_produces_valid_code(self):
        assert validate_guess(generate_secret()) is None

    def test_draw_order_is_preserved(self):
        assert generate_secret(FixedSecretRandom("5830")) == "5830"

    def test_repeated_digits_are_redrawn(self):
        # 7 is drawn twice; the repeat is skipped
        assert generate_secret(FixedSecretRandom("77123")) == "7123"

    def test_leading_zero_swapped_with_second_digit(self):
        assert generate_secret(FixedSecretRandom("0591")) == "5091"

    def test_seeded_generation_is_deterministic(self):
        assert generate_secret(random.Random(42)) == generate_secret(random.Random(42))
