import threading

import numpy as np
import pandas as pd
import pytest
import xgboost as xgb
from sklearn.datasets import make_regression

from xgb_gridcv.cv_config import CrossValidationConfig
from xgb_gridcv.models.xgb_cv import CVOutcome


def make_eval_log(test_means, metric="rmse"):
    """Build an xgboost.cv-shaped evaluation log from per-round held-out means."""
    test_means = np.asarray(test_means, dtype=float)
    return pd.DataFrame(
        {
            f"train-{metric}-mean": test_means * 0.8,
            f"train-{metric}-std": np.full_like(test_means, 0.01),
            f"test-{metric}-mean": test_means,
            f"test-{metric}-std": np.full_like(test_means, 0.05),
        }
    )


class FakeCV:
    """
    Deterministic stand-in for xgboost.cv.

    score_fn(params) -> final held-out mean (or raises). The log has `n_rounds`
    decreasing rows ending at that score; the best iteration is the last row.
    """

    def __init__(self, score_fn, n_rounds=5):
        self.score_fn = score_fn
        self.n_rounds = n_rounds
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, params, dtrain, cfg, seed):
        with self._lock:
            self.calls.append((dict(params), seed))
        score = self.score_fn(params)
        if score is None:
            return CVOutcome(eval_log=make_eval_log([]), best_iteration=None)
        means = np.linspace(score + 1.0, score, self.n_rounds)
        return CVOutcome(eval_log=make_eval_log(means, cfg.eval_metric), best_iteration=self.n_rounds - 1)


@pytest.fixture
def fake_cv():
    return FakeCV


@pytest.fixture
def fast_cfg():
    return CrossValidationConfig(nfold=3, num_boost_round=30, early_stopping_rounds=5, seed=0)


@pytest.fixture(scope="session")
def regression_frame():
    """Small synthetic regression problem as a DataFrame with a 'y' label column."""
    X, y = make_regression(n_samples=300, n_features=6, n_informative=4, noise=10.0, random_state=42)
    df = pd.DataFrame(X, columns=[f"f{i}" for i in range(X.shape[1])])
    df["y"] = y
    return df


@pytest.fixture(scope="session")
def dtrain(regression_frame):
    X = regression_frame.drop(columns=["y"])
    return xgb.DMatrix(X, label=regression_frame["y"])
