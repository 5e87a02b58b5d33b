from dataclasses import dataclass
from typing import Any
import numpy as np
import pandas as pd
from xgb_gridcv.cv_config import CrossValidationConfig
from xgb_gridcv.errors import CollaboratorUnavailable

# Metrics where larger is better; everything else is minimized.
_MAXIMIZE_PREFIXES = ("auc", "aucpr", "map", "ndcg", "pre")


@dataclass(frozen=True)
class CVOutcome:
    eval_log: pd.DataFrame
    best_iteration: int | None


def import_xgboost():
    try:
        import xgboost
    except ImportError as exc:
        raise CollaboratorUnavailable(
            "xgboost is required for cross-validation but could not be imported"
        ) from exc
    return xgboost


def make_xgb_params(
    *,
    params_overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Booster defaults updated by a combination's overrides."""
    params: dict[str, Any] = dict(
        objective="reg:squarederror",
        eta=0.3,
        max_depth=6,
        min_child_weight=1,
        subsample=1.0,
        colsample_bytree=1.0,
        tree_method="hist",
    )

    if params_overrides:
        params.update(dict(params_overrides))

    return params


def metric_is_maximized(metric: str) -> bool:
    base = str(metric).split("@")[0].lower()
    return base in _MAXIMIZE_PREFIXES


def best_iteration_from_log(eval_log: pd.DataFrame, metric: str) -> int | None:
    """
    Best round index of an xgboost.cv log, or None if no usable round exists.

    First round with the best held-out mean, which is the round early stopping
    keeps (xgboost.cv truncates the log there once it stops). The same rule
    applies when the round budget ran out first or early stopping is off.
    """
    col = f"test-{metric}-mean"
    if eval_log is None or eval_log.empty or col not in eval_log.columns:
        return None

    test_mean = pd.to_numeric(eval_log[col], errors="coerce").to_numpy(dtype=float)

    finite = np.isfinite(test_mean)
    if not np.any(finite):
        return None

    if metric_is_maximized(metric):
        best = int(np.argmax(np.where(finite, test_mean, -np.inf)))
    else:
        best = int(np.argmin(np.where(finite, test_mean, np.inf)))
    return best


def booster_params(
    params: dict[str, Any] | None,
    *,
    seed: int,
    nthread: int | None = None,
) -> dict[str, Any]:
    """
    Full booster params for one run. `seed` drives subsample/colsample draws and
    `nthread` caps threads; a combination that sets either keeps its own value.
    """
    out = make_xgb_params(params_overrides=params)
    if "seed" not in out and "random_state" not in out:
        out["seed"] = int(seed)
    if nthread is not None and "nthread" not in out and "n_jobs" not in out:
        out["nthread"] = int(nthread)
    return out


def run_xgb_cv(
    params: dict[str, Any],
    dtrain,
    cfg: CrossValidationConfig,
    seed: int,
) -> CVOutcome:
    """
    One k-fold cross-validation of a single parameter combination via xgboost.cv.
    `seed` fixes both the fold assignment and the booster's sampling.
    Booster errors propagate to the caller.
    """
    xgb = import_xgboost()

    es_rounds = int(cfg.early_stopping_rounds) or None
    eval_log = xgb.cv(
        booster_params(params, seed=seed, nthread=cfg.nthread),
        dtrain,
        num_boost_round=int(cfg.num_boost_round),
        nfold=int(cfg.nfold),
        metrics=[cfg.eval_metric],
        maximize=metric_is_maximized(cfg.eval_metric),
        early_stopping_rounds=es_rounds,
        seed=int(seed),
        shuffle=bool(cfg.shuffle),
        as_pandas=True,
        verbose_eval=False,
    )

    best_it = best_iteration_from_log(eval_log, cfg.eval_metric)
    return CVOutcome(eval_log=eval_log, best_iteration=best_it)


def fit_final_model(
    dtrain,
    params: dict[str, Any] | None,
    *,
    num_boost_round: int,
    seed: int = 0,
):
    """Trains one booster on the full training set with the tuned params and round count."""
    xgb = import_xgboost()
    if int(num_boost_round) <= 0:
        raise ValueError(f"num_boost_round must be > 0, got {num_boost_round}")
    return xgb.train(
        booster_params(params, seed=seed),
        dtrain,
        num_boost_round=int(num_boost_round),
    )
