import dataclasses
import itertools
import math
import random
from dataclasses import dataclass
from typing import Callable, List, Tuple, Dict, Optional

from columnar_implementation import (
    fill_grid,
    read_grid,
    identity_order,
    get_possible_dimensions,
)
from columnar_breaker_helpers import (
    ScoreBreakdown,
    set_config_helpers,
    score_decryption,
    total_score,
    simulated_annealing_runner,
)


CONFIG: Dict = {}

Dimensions = Tuple[int, int]
ProgressFn = Callable[[float], None]
DimensionProgressFn = Callable[[float, Dimensions], None]


def set_config(cfg: Dict):
    """Initialize module-level CONFIG."""
    global CONFIG
    if isinstance(cfg, dict):
        CONFIG = cfg.copy()
    else:
        CONFIG = dict(cfg)


def debug(*args, **kwargs):
    """Print only when CONFIG['debug_output'] is True."""
    if CONFIG.get("debug_output", False):
        print(*args, **kwargs)


@dataclass(frozen=True)
class Candidate:
    """One scored decryption. refined_text is attached later via with_refinement()."""

    dimensions: Dimensions
    column_order: Tuple[int, ...]
    decrypted_text: str
    scores: ScoreBreakdown
    score: float
    refined_text: Optional[str] = None

    def with_refinement(self, refined_text: Optional[str]) -> "Candidate":
        return dataclasses.replace(self, refined_text=refined_text)


class ColumnarBreaker:
    """
    Columnar transposition breaker: enumerates grid geometries, searches column
    orders per geometry and ranks the decryptions by n-gram score.
    """

    def __init__(
        self, config: Optional[Dict] = None, rng: Optional[random.Random] = None
    ):
        if config is not None:
            set_config(config)
            set_config_helpers(config)
        self.rng = rng if rng is not None else random.Random(CONFIG.get("random_seed"))

    def random_order(self, key_length: int) -> List[int]:
        """Return a Fisher-Yates shuffled column order of given length."""
        order = list(range(key_length))
        self.rng.shuffle(order)
        return order

    # ---------------------------
    # Candidate orders
    # ---------------------------
    def generate_candidate_orders(
        self, cols: int, max_candidates: Optional[int] = None
    ) -> List[List[int]]:
        """
        All cols! orders when cols <= exhaustive_max_columns, otherwise the
        identity order followed by distinct random orders up to max_candidates.
        """
        if cols <= CONFIG.get("exhaustive_max_columns", 7):
            return [list(p) for p in itertools.permutations(range(cols))]

        if max_candidates is None:
            max_candidates = CONFIG.get("max_random_candidates", 100)
        target = min(max(1, max_candidates), math.factorial(cols))

        orders = [identity_order(cols)]
        seen = {tuple(orders[0])}
        while len(orders) < target:
            order = self.random_order(cols)
            key = tuple(order)
            if key in seen:
                continue
            seen.add(key)
            orders.append(order)
        return orders

    def annealed_orders(self, grid: List[List[str]], cols: int) -> List[List[int]]:
        """Column orders found by simulated annealing on the n-gram score."""

        def score_order(order: List[int]) -> float:
            return total_score(score_decryption(read_grid(grid, order)))

        orders = []
        for restart in range(CONFIG.get("annealing_restarts", 3)):
            start = identity_order(cols) if restart == 0 else None
            best_order, best_score = simulated_annealing_runner(
                score_order,
                cols,
                self.rng,
                start_order=start,
                T_init=CONFIG.get("annealing_t_init", 1.0),
                T_min=CONFIG.get("annealing_t_min", 1e-3),
                alpha=CONFIG.get("annealing_alpha", 0.9),
                iterations_per_temp=CONFIG.get("annealing_iterations_per_temp", 50),
            )
            debug(f"[ANNEAL] restart {restart + 1}: score={best_score:.3f}")
            orders.append(best_order)
        return orders

    # ---------------------------
    # Scoring
    # ---------------------------
    def score_text(self, text: str) -> Tuple[ScoreBreakdown, float]:
        scores = score_decryption(text)
        return scores, total_score(scores)

    # ---------------------------
    # Search
    # ---------------------------
    def solve_dimension(
        self,
        cipher_text: str,
        dimensions: Dimensions,
        on_progress: Optional[ProgressFn] = None,
    ) -> List[Candidate]:
        """Score every candidate order for one grid geometry; return the top candidates."""
        rows, cols = dimensions
        grid = fill_grid(cipher_text, rows, cols)

        candidate_orders = self.generate_candidate_orders(cols)
        if CONFIG.get("use_annealing", False) and cols > CONFIG.get(
            "exhaustive_max_columns", 7
        ):
            seen = {tuple(o) for o in candidate_orders}
            for order in self.annealed_orders(grid, cols):
                if tuple(order) not in seen:
                    seen.add(tuple(order))
                    candidate_orders.append(order)

        candidates: List[Candidate] = []
        total = len(candidate_orders)
        for i, column_order in enumerate(candidate_orders):
            decrypted_text = read_grid(grid, column_order)
            scores, score = self.score_text(decrypted_text)
            candidates.append(
                Candidate(
                    dimensions=(rows, cols),
                    column_order=tuple(column_order),
                    decrypted_text=decrypted_text,
                    scores=scores,
                    score=score,
                )
            )
            if on_progress is not None:
                on_progress((i + 1) / total)

        # sort is stable: equal scores keep generation order (identity first)
        candidates.sort(key=lambda c: c.score, reverse=True)
        top_n = CONFIG.get("top_candidates_per_dimension", 10)

        debug(
            f"solve_dimension {rows}x{cols}: {total} orders, best={candidates[0].score:.2f}"
            if candidates
            else f"solve_dimension {rows}x{cols}: no orders"
        )
        return candidates[:top_n]

    def select_final_candidates(self, candidates: List[Candidate]) -> List[Candidate]:
        """
        Two-tier cut over a pool sorted descending by score: when the top score
        clears signal_threshold keep everything within relative_score_window of
        it (at most max_final_candidates); otherwise keep the top
        fallback_candidates regardless of score.
        """
        if not candidates:
            return []

        ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
        top_score = ranked[0].score

        if top_score > CONFIG.get("signal_threshold", -20):
            threshold = top_score - CONFIG.get("relative_score_window", 10)
            filtered = [c for c in ranked if c.score >= threshold]
            return filtered[: CONFIG.get("max_final_candidates", 15)]

        return ranked[: CONFIG.get("fallback_candidates", 10)]

    def solve_all_dimensions(
        self,
        cipher_text: str,
        on_progress: Optional[DimensionProgressFn] = None,
    ) -> List[Candidate]:
        """Run solve_dimension for each grid geometry in ascending rows and merge."""
        if not cipher_text:
            return []

        possible_dimensions = get_possible_dimensions(len(cipher_text))
        if not possible_dimensions:
            return []

        all_candidates: List[Candidate] = []
        for i, dimension in enumerate(possible_dimensions):
            if on_progress is not None:
                on_progress(i / len(possible_dimensions), dimension)

            if CONFIG.get("intermediate_output", True):
                print(
                    f"[DIMENSION] {dimension[0]}x{dimension[1]} ({i + 1}/{len(possible_dimensions)})"
                )
            all_candidates.extend(self.solve_dimension(cipher_text, dimension))

        all_candidates.sort(key=lambda c: c.score, reverse=True)
        if not all_candidates:
            return []

        debug(
            "Score distribution:",
            {
                "total": len(all_candidates),
                "top_score": all_candidates[0].score,
                "top5_scores": [c.score for c in all_candidates[:5]],
                "worst_score": all_candidates[-1].score,
            },
        )

        return self.select_final_candidates(all_candidates)
