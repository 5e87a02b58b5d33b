import pandas as pd
from collections.abc import Mapping, Sequence
from typing import Any
from xgb_gridcv.cv_config import CrossValidationConfig
from xgb_gridcv.data import make_dmatrix, split_train_test
from xgb_gridcv.metrics import baseline_mean_metrics, evaluate_holdout
from xgb_gridcv.models.xgb_cv import fit_final_model
from xgb_gridcv.models_tuning.tuning import GridSearchRunner, tune_xgb_params_staged
from xgb_gridcv.models_tuning.tuning_config import DEFAULT_CV_CONFIG


def compute_tuning_report(
    df: pd.DataFrame,
    *,
    label_col: str,
    label: str = "",
    cfg: CrossValidationConfig = DEFAULT_CV_CONFIG,
    stages: Sequence[tuple[str, Mapping[str, Sequence[Any]]]] | None = None,
    base_params: Mapping[str, Any] | None = None,
    test_size: float = 0.2,
    random_state: int = 42,
    runner: GridSearchRunner | None = None,
) -> dict[str, Any]:
    """
    Splits off a test set, runs staged CV tuning on the training part only, refits
    the best params on the whole training part and scores it on the test set
    against a predict-the-mean baseline. Returns a dict of artifacts + meta. Pure compute (no I/O).
    """
    X_tr, X_te, y_tr, y_te = split_train_test(
        df, label_col=label_col, test_size=test_size, random_state=random_state
    )
    dtrain = make_dmatrix(X_tr, y_tr)
    dtest = make_dmatrix(X_te, y_te)

    best_meta, tables = tune_xgb_params_staged(
        dtrain,
        cfg=cfg,
        stages=stages,
        base_params=base_params,
        runner=runner,
    )

    holdout = None
    if best_meta["num_boost_round"] is not None:
        booster = fit_final_model(
            dtrain,
            best_meta["best_params"],
            num_boost_round=best_meta["num_boost_round"],
            seed=cfg.seed,
        )
        holdout = evaluate_holdout(booster, dtest)

    meta: dict[str, Any] = {
        "label": label or label_col,
        "label_col": label_col,
        "n_train": int(len(X_tr)),
        "n_test": int(len(X_te)),
        "test_size": test_size,
        "random_state": random_state,
    }

    return {
        "tuning": best_meta,
        "tables": tables,
        "holdout": holdout,
        "baseline": baseline_mean_metrics(y_tr, y_te),
        "meta": meta,
    }
