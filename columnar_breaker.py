from typing import List, Dict, Optional
import os

import columnar_breaker_helpers
import columnar_breaker_utils
import plausibility_refiner

from columnar_implementation import (
    ALPHABET,
    get_possible_dimensions,
    validate_cipher_text,
    normalize_cipher_text,
    column_order_from_key,
    encrypt_message,
    pad_plaintext,
)
from columnar_breaker_helpers import set_config_helpers
from columnar_breaker_utils import (
    Candidate,
    ColumnarBreaker,
    DimensionProgressFn,
    set_config,
)
from plausibility_refiner import (
    PlausibilityRefiner,
    RefinementCache,
    DEFAULT_CACHE_PATH,
    default_oracle,
    set_config_refiner,
)


CONFIG = {
    # GENERAL SETTINGS
    "debug_output": False,  # if True, print detailed debug info during search
    "intermediate_output": True,  # if True, print per-dimension progress and notices
    "random_seed": None,  # int makes the randomized order sampling reproducible
    #
    # SCORING WEIGHTS (total = weighted sum of sub-scores)
    "bigram_weight": 0.4,
    "trigram_weight": 0.5,
    "double_letter_weight": 0.1,
    #
    # COLUMN ORDER SEARCH
    "exhaustive_max_columns": 7,  # up to this many columns every permutation is tried
    "max_random_candidates": 100,  # sampled orders (identity included) for wider grids
    "top_candidates_per_dimension": 10,  # kept per dimension before the global merge
    "use_annealing": False,  # if True, add simulated-annealing orders for wide grids
    "annealing_restarts": 3,  # first restart starts from the identity order
    "annealing_t_init": 1.0,
    "annealing_t_min": 1e-3,
    "annealing_alpha": 0.9,
    "annealing_iterations_per_temp": 50,
    #
    # GLOBAL SELECTION (empirical thresholds)
    "signal_threshold": -20,  # top score above this means a usable signal exists
    "relative_score_window": 10,  # keep candidates within this distance of the top score
    "max_final_candidates": 15,  # cap when a signal exists
    "fallback_candidates": 10,  # returned regardless of score when no signal exists
    #
    # PLAUSIBILITY REFINEMENT
    "enable_refinement": True,  # if False, skip the oracle step entirely
    "refine_top_candidates": 3,  # only this many final candidates go to the oracle
    "refinement_workers": 3,
    "similarity_threshold": 0.9,  # minimum letter agreement to accept a refinement
    "refinement_cache_ttl_seconds": 24 * 60 * 60,
    "refinement_cache_path": None,  # defaults to auxiliary/refinement_cache.json
    "completions_api": None,  # defaults to the COMPLETIONS_API environment variable
    "completions_timeout": 20,
    "completions_max_tokens": 500,
    "completions_temperature": 0.1,
}

set_config(CONFIG)
set_config_helpers(CONFIG)
set_config_refiner(CONFIG)


def make_refiner(cfg: Dict) -> PlausibilityRefiner:
    """Build a refiner for the configured endpoint and cache file."""
    cache = RefinementCache(
        path=cfg.get("refinement_cache_path") or DEFAULT_CACHE_PATH,
        ttl_seconds=cfg.get("refinement_cache_ttl_seconds", 24 * 60 * 60),
    )
    return PlausibilityRefiner(oracle=default_oracle(), cache=cache)


def solve(
    cipher_text: str,
    on_progress: Optional[DimensionProgressFn] = None,
    refiner: Optional[PlausibilityRefiner] = None,
    config: Optional[Dict] = None,
) -> List[Candidate]:
    """
    Break a columnar transposition: returns ranked candidates, the top few
    optionally carrying a refined_text. An empty list means no candidates (an
    empty input or a prime length with no rectangular grid).

    config overrides apply for the duration of this call only; the helper
    modules get their previous settings back afterwards.
    """
    cfg = CONFIG.copy()
    if config:
        cfg.update(config)

    prev_configs = (
        columnar_breaker_utils.CONFIG,
        columnar_breaker_helpers.CONFIG,
        plausibility_refiner.CONFIG,
    )
    set_config(cfg)
    set_config_helpers(cfg)
    set_config_refiner(cfg)
    try:
        return _solve(cipher_text, cfg, on_progress, refiner)
    finally:
        set_config(prev_configs[0])
        set_config_helpers(prev_configs[1])
        set_config_refiner(prev_configs[2])


def _solve(cipher_text, cfg, on_progress, refiner) -> List[Candidate]:
    if not cipher_text:
        return []
    validate_cipher_text(cipher_text)

    if not get_possible_dimensions(len(cipher_text)):
        if cfg.get("intermediate_output", True):
            print(
                f"[NOTICE] Cipher text length {len(cipher_text)} is prime; no rectangular factorization exists."
            )
        return []

    breaker = ColumnarBreaker(config=cfg)
    candidates = breaker.solve_all_dimensions(cipher_text, on_progress=on_progress)
    if cfg.get("debug_output", False):
        print(f"solve: {len(candidates)} candidate(s) after selection")

    if not cfg.get("enable_refinement", True) or not candidates:
        return candidates

    if refiner is None:
        refiner = make_refiner(cfg)
    return refiner.refine_candidates(candidates)


def print_candidates(candidates: List[Candidate], top_show: int = 10):
    """Print the ranked candidates the way the breaker reports results."""
    if not candidates:
        print("No candidates found.")
        return

    print("\n" + "=" * 80)
    print(f"BEST CANDIDATES ({len(candidates)} total):")
    print("=" * 80 + "\n")
    for idx, cand in enumerate(candidates[:top_show], start=1):
        rows, cols = cand.dimensions
        print(
            f"  [{idx}] {rows}x{cols} order={list(cand.column_order)} score={cand.score:.2f} "
            f"(bigrams={cand.scores.bigrams} trigrams={cand.scores.trigrams} doubles={cand.scores.double_letters})"
        )
        print(f"       {cand.decrypted_text}")
        if cand.refined_text:
            print(f"       -> {cand.refined_text}")
    print()


def break_cipher(
    plaintext: str,
    column_key: str,
    config: Optional[Dict] = None,
) -> List[Candidate]:
    """Encrypt plaintext with column_key, then run the solver on the result."""
    cfg = CONFIG.copy()
    if config:
        cfg.update(config)

    letters = "".join(ch for ch in normalize_cipher_text(plaintext) if ch in ALPHABET)
    clean = pad_plaintext(letters, len(column_key))
    cols = len(column_key)
    rows = len(clean) // cols
    column_order = column_order_from_key(column_key)
    ciphertext = encrypt_message(clean, rows, cols, column_order)

    if cfg.get("intermediate_output", True):
        print(
            f"Breaking '{clean}' encrypted with key '{column_key}' "
            f"({rows}x{cols}, order={column_order})"
        )
        print(f"Ciphertext: {ciphertext}\n")

    candidates = solve(ciphertext, config=config)

    if cfg.get("intermediate_output", True):
        print_candidates(candidates)
        hits = [
            i
            for i, c in enumerate(candidates, start=1)
            if c.decrypted_text == clean
        ]
        if hits:
            print(f"Plaintext recovered at rank {hits[0]}")
        else:
            print("Plaintext not among the returned candidates")
    return candidates


if __name__ == "__main__":

    # Example invocation: solve a ciphertext given via $CIPHER_TEXT, or run a self-test

    cipher_text = os.environ.get("CIPHER_TEXT")
    if cipher_text:
        print_candidates(solve(normalize_cipher_text(cipher_text)))
    else:
        break_cipher(
            plaintext="THE MEN AND WOMEN OF THE FOREST HAS ENTERTAINED THE KING",
            column_key="ZEBRA",
        )
