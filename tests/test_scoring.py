"""
N-gram scoring and the character-similarity metric
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import random

import pytest

from columnar_breaker_helpers import (
    ScoreBreakdown,
    TRIGRAM_HIT_POINTS,
    score_decryption,
    total_score,
    calculate_double_letter_score,
    calculate_character_similarity,
    random_transformation,
    simulated_annealing_runner,
    set_config_helpers,
)


def setup_function(_):
    set_config_helpers({})


def test_score_breakdown_of_english_text():
    scores = score_decryption("THEBALLANDTHESEA")
    assert scores == ScoreBreakdown(bigrams=7, trigrams=6, double_letters=1)
    assert total_score(scores) == pytest.approx(5.9)


def test_no_hits_scores_zero():
    scores = score_decryption("QXZJVQ")
    assert scores == ScoreBreakdown(0, 0, 0)
    assert total_score(scores) == 0


def test_appending_trigram_raises_trigram_score_by_hit_weight():
    base = "QQQQQQ"
    before = score_decryption(base)
    after = score_decryption(base + "ING")
    assert after.trigrams - before.trigrams == TRIGRAM_HIT_POINTS
    assert after.double_letters == before.double_letters


def test_double_letters_count_non_overlapping():
    assert calculate_double_letter_score("BALL") == 1
    assert calculate_double_letter_score("LLL") == 1
    assert calculate_double_letter_score("LLLL") == 2
    assert calculate_double_letter_score("MISSPELLED") == 2
    # AA is not a reference double
    assert calculate_double_letter_score("BAAZAAR") == 0


def test_total_score_uses_configured_weights():
    scores = ScoreBreakdown(bigrams=10, trigrams=4, double_letters=3)
    assert total_score(scores) == pytest.approx(10 * 0.4 + 4 * 0.5 + 3 * 0.1)
    set_config_helpers({"bigram_weight": 1.0, "trigram_weight": 0.0, "double_letter_weight": 0.0})
    assert total_score(scores) == pytest.approx(10.0)


def test_similarity_ignores_spacing_punctuation_and_case():
    assert calculate_character_similarity("HELLOWORLD", "Hello, world!") == 1.0


def test_similarity_is_positional():
    assert calculate_character_similarity("ABCDEFGHIJ", "ABCDEFGHIX") == pytest.approx(0.9)
    assert calculate_character_similarity("ABCDEFGHIJ", "XBCDEFGHIX") == pytest.approx(0.8)
    # a shifted letter sequence is heavily penalized
    assert calculate_character_similarity("ABCDEFGHIJ", "BCDEFGHIJ") < 0.2


def test_similarity_divides_by_longer_text():
    assert calculate_character_similarity("ABCDEFGHIJ", "ABCDEFGHIJKL") == pytest.approx(10 / 12)


def test_similarity_empty_inputs():
    assert calculate_character_similarity("", "  ,. ") == 1.0
    assert calculate_character_similarity("ABC", "") == 0.0


def test_random_transformation_yields_permutations():
    rng = random.Random(7)
    order = list(range(9))
    for _ in range(200):
        _, order = random_transformation(order, rng)
        assert sorted(order) == list(range(9))


def test_annealing_finds_order_maximizing_objective():
    target = [2, 0, 3, 1, 4]

    def score_order(order):
        return sum(1.0 for a, b in zip(order, target) if a == b)

    best_order, best_score = simulated_annealing_runner(
        score_order, 5, random.Random(1), start_order=list(range(5)), alpha=0.8
    )
    assert sorted(best_order) == list(range(5))
    assert best_score == score_order(best_order)
    assert best_score >= score_order(list(range(5)))
