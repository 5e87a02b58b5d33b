"""
Column naming convention (canonical)

1) Evaluation log (as produced by xgboost.cv), one row per boosting round:
   train-{metric}-mean, train-{metric}-std, test-{metric}-mean, test-{metric}-std
   where "test" is the held-out fold of each CV split.

2) Results table, one row per parameter combination:
   <parameter columns, in input order> + RESULT_COLS
   The evaluation-log row at the best iteration is renamed onto RESULT_COLS,
   so downstream code never has to know which metric was tuned.
"""

from dataclasses import dataclass
from collections.abc import Iterable, Sequence


@dataclass(frozen=True)
class Cols:
    """
    Canonical column names used across modules.
    Keep these stable to avoid string drift between tuning/runner/report code.
    """

    ITERATION: str = "iteration"
    TRAIN_MEAN: str = "train_metric_mean"
    TRAIN_STD: str = "train_metric_std"
    TEST_MEAN: str = "test_metric_mean"
    TEST_STD: str = "test_metric_std"

    @property
    def METRIC_COLS(self) -> tuple[str, ...]:
        return (self.TRAIN_MEAN, self.TRAIN_STD, self.TEST_MEAN, self.TEST_STD)

    @property
    def RESULT_COLS(self) -> tuple[str, ...]:
        return (self.ITERATION, *self.METRIC_COLS)

COLS = Cols()


def eval_log_cols(metric: str) -> dict[str, str]:
    """Maps xgboost.cv log column names for `metric` onto the generic metric columns."""
    return {
        f"train-{metric}-mean": COLS.TRAIN_MEAN,
        f"train-{metric}-std": COLS.TRAIN_STD,
        f"test-{metric}-mean": COLS.TEST_MEAN,
        f"test-{metric}-std": COLS.TEST_STD,
    }


def missing_cols(available: Sequence[str], required: Iterable[str]) -> list[str]:
    """Return missing column names (preserving order)."""
    avail = set(available)
    return [c for c in required if c not in avail]


def require_cols(available: Sequence[str], required: Iterable[str], *, context: str = "") -> None:
    """
    Strict-mode validator: raise if any required column is missing.
    """
    miss = missing_cols(available, required)
    if miss:
        prefix = f"{context}: " if context else ""
        raise ValueError(prefix + f"Missing required columns: {miss}")
