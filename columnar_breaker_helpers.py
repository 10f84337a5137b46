from typing import List, Tuple, Dict, Optional, Callable
from dataclasses import dataclass
import math
import random
import re


CONFIG: Dict = {}

# Reference n-gram tables for English plaintext
COMMON_BIGRAMS = frozenset(
    [
        "TH",
        "HE",
        "AN",
        "IN",
        "ER",
        "RE",
        "ON",
        "AT",
        "ES",
        "OR",
        "TE",
        "OF",
        "ED",
        "IS",
        "IT",
        "AL",
        "AR",
        "ST",
        "TO",
        "NT",
    ]
)
COMMON_TRIGRAMS = frozenset(
    [
        "THE",
        "AND",
        "ING",
        "ENT",
        "ION",
        "FOR",
        "NDE",
        "HAS",
        "NCE",
        "EDT",
        "TIS",
        "OFT",
        "STH",
        "MEN",
    ]
)
DOUBLE_LETTERS = (
    "LL",
    "SS",
    "EE",
    "TT",
    "OO",
    "MM",
    "FF",
    "PP",
    "DD",
    "GG",
    "CC",
    "RR",
)

BIGRAM_HIT_POINTS = 1
TRIGRAM_HIT_POINTS = 2


def set_config_helpers(cfg: Dict):
    """Initialize module-level CONFIG (copy) so helpers use the same settings as caller."""
    global CONFIG
    if isinstance(cfg, dict):
        CONFIG = cfg.copy()
    else:
        CONFIG = dict(cfg)


def debug(*args, **kwargs):
    if CONFIG.get("debug_output", False):
        print(*args, **kwargs)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Independent n-gram sub-scores of one decryption."""

    bigrams: int
    trigrams: int
    double_letters: int


def get_bigrams(text: str) -> List[str]:
    """Return overlapping consecutive bigrams (length-2 substrings)."""
    return [text[i : i + 2] for i in range(len(text) - 1)]


def get_trigrams(text: str) -> List[str]:
    """Return overlapping consecutive trigrams (length-3 substrings)."""
    return [text[i : i + 3] for i in range(len(text) - 2)]


def calculate_bigram_score(text: str) -> int:
    return BIGRAM_HIT_POINTS * sum(1 for bg in get_bigrams(text) if bg in COMMON_BIGRAMS)


def calculate_trigram_score(text: str) -> int:
    return TRIGRAM_HIT_POINTS * sum(
        1 for tg in get_trigrams(text) if tg in COMMON_TRIGRAMS
    )


def calculate_double_letter_score(text: str) -> int:
    # str.count is non-overlapping: "LLL" holds one "LL"
    return sum(text.count(pair) for pair in DOUBLE_LETTERS)


def score_decryption(text: str) -> ScoreBreakdown:
    """Score a candidate decryption against the reference n-gram tables."""
    return ScoreBreakdown(
        bigrams=calculate_bigram_score(text),
        trigrams=calculate_trigram_score(text),
        double_letters=calculate_double_letter_score(text),
    )


def total_score(scores: ScoreBreakdown) -> float:
    """Weighted sum of the sub-scores; no length normalization."""
    return (
        scores.bigrams * CONFIG.get("bigram_weight", 0.4)
        + scores.trigrams * CONFIG.get("trigram_weight", 0.5)
        + scores.double_letters * CONFIG.get("double_letter_weight", 0.1)
    )


def is_better(a: float, b: float, eps: float = 1e-8) -> bool:
    """Return True when a is meaningfully greater than b."""
    return a > b + eps


_NON_WORD = re.compile(r"[\s\W_]")


def strip_formatting(text: str) -> str:
    """Remove whitespace and punctuation, uppercase the rest."""
    return _NON_WORD.sub("", text).upper()


def calculate_character_similarity(text1: str, text2: str) -> float:
    """
    Positional character agreement of two texts once spacing and punctuation are
    removed: matches over the shared prefix length divided by the longer length.
    """
    clean1 = strip_formatting(text1)
    clean2 = strip_formatting(text2)

    if not clean1 and not clean2:
        return 1.0
    if not clean1 or not clean2:
        return 0.0

    matches = sum(1 for a, b in zip(clean1, clean2) if a == b)
    return matches / max(len(clean1), len(clean2))


def random_transformation(
    key_order: List[int], rng: random.Random
) -> Tuple[str, List[int]]:
    """
    Draw one move from the column-order transformation set: swap two columns,
    swap two consecutive equal-length segments, rotate a segment, reverse the
    order, or swap adjacent pairs.
    """
    m = len(key_order)
    nk = key_order.copy()
    if m < 2:
        return "Identity", nk

    kind = rng.randrange(5)

    if kind == 0:
        i, j = sorted(rng.sample(range(m), 2))
        nk[i], nk[j] = nk[j], nk[i]
        return f"SwapElements({i},{j})", nk

    if kind == 1:
        L = rng.randint(1, m // 2)
        i = rng.randint(0, m - 2 * L)
        j = i + L
        nk[i : i + L], nk[j : j + L] = key_order[j : j + L], key_order[i : i + L]
        return f"SwapSegments({i},{L},{j},{L})", nk

    if kind == 2:
        L = rng.randint(2, m)
        i = rng.randint(0, m - L)
        k = rng.randint(1, L - 1)
        seg = nk[i : i + L]
        nk[i : i + L] = seg[k:] + seg[:k]
        return f"RotateSegment({i},{L},{k})", nk

    if kind == 3:
        nk.reverse()
        return "ReverseKey", nk

    for i in range(0, m - 1, 2):
        nk[i], nk[i + 1] = nk[i + 1], nk[i]
    return "SwapPairs", nk


def simulated_annealing_runner(
    score_order: Callable[[List[int]], float],
    key_length: int,
    rng: random.Random,
    start_order: Optional[List[int]] = None,
    T_init: float = 1.0,
    T_min: float = 1e-3,
    alpha: float = 0.9,
    iterations_per_temp: int = 50,
) -> Tuple[List[int], float]:
    """Anneal over column orders, maximizing score_order; returns (best_order, best_score)."""
    if start_order is None:
        current_order = list(range(key_length))
        rng.shuffle(current_order)
    else:
        current_order = list(start_order)

    current_score = score_order(current_order)
    best_order = current_order.copy()
    best_score = current_score

    T = T_init
    while T > T_min:
        for _ in range(iterations_per_temp):
            move, new_order = random_transformation(current_order, rng)
            new_score = score_order(new_order)
            delta = new_score - current_score
            if delta > 0 or rng.random() < math.exp(delta / T):
                current_order = new_order
                current_score = new_score
            if is_better(current_score, best_score):
                best_order = current_order.copy()
                best_score = current_score
                debug(
                    f"[SIM-ANNEAL] New best at T={T:.5f} via {move}: order={best_order} score={best_score:.3f}"
                )
        T *= alpha

    debug(f"[SIM-ANNEAL] Finished -> order={best_order} score={best_score:.3f}")
    return best_order, best_score
