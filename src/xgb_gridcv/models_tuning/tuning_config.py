"""Default tuning policy"""
from typing import Any
from xgb_gridcv.cv_config import CrossValidationConfig


DEFAULT_CV_CONFIG = CrossValidationConfig(
    nfold=10,
    num_boost_round=500,
    early_stopping_rounds=10,
    eval_metric="rmse",
    seed=42,
    seed_policy="fixed",
)

# Staged grids: each stage is tuned with the best values of the earlier stages held fixed.
# Tree shape first (depth vs leaf weight), then row/column bagging, then the learning rate.
DEFAULT_DEPTH_GRID: dict[str, list[Any]] = {
    "max_depth": list(range(2, 10)),
    "min_child_weight": list(range(1, 8)),
}

DEFAULT_SAMPLING_GRID: dict[str, list[Any]] = {
    "subsample": [1.0, 0.9, 0.8, 0.7],
    "colsample_bytree": [1.0, 0.9, 0.8, 0.7],
}

DEFAULT_ETA_GRID: dict[str, list[Any]] = {
    "eta": [0.3, 0.2, 0.1, 0.05, 0.01, 0.005],
}

DEFAULT_STAGES: list[tuple[str, dict[str, list[Any]]]] = [
    ("depth", DEFAULT_DEPTH_GRID),
    ("sampling", DEFAULT_SAMPLING_GRID),
    ("eta", DEFAULT_ETA_GRID),
]
