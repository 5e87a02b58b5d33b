import numpy as np


def _finite_pairs(y_true, y_pred) -> tuple[np.ndarray, np.ndarray]:
    yt = np.asarray(y_true, dtype=float).ravel()
    yp = np.asarray(y_pred, dtype=float).ravel()
    if yt.shape != yp.shape:
        raise ValueError(f"y_true and y_pred must have the same length, got {yt.shape} and {yp.shape}")
    m = np.isfinite(yt) & np.isfinite(yp)
    return yt[m], yp[m]


def rmse(y_true, y_pred) -> float:
    """
    Root mean squared error over finite observations.
    Returns NaN if no finite observations exist after filtering.
    """
    yt, yp = _finite_pairs(y_true, y_pred)
    return float(np.sqrt(np.mean((yt - yp) ** 2))) if yt.size else float("nan")


def mae(y_true, y_pred) -> float:
    """Mean absolute error over finite observations (NaN if none)."""
    yt, yp = _finite_pairs(y_true, y_pred)
    return float(np.mean(np.abs(yt - yp))) if yt.size else float("nan")


def evaluate_holdout(booster, dtest) -> dict[str, float]:
    """Scores a trained booster on the caller's held-out DMatrix."""
    y_true = dtest.get_label()
    y_pred = booster.predict(dtest)
    return {
        "rmse": rmse(y_true, y_pred),
        "mae": mae(y_true, y_pred),
        "n": int(len(y_true)),
    }


def baseline_mean_metrics(y_train, y_test) -> dict[str, float]:
    """
    Naive benchmark: predict the training-label mean for every test row.
    A tuned model should beat this on both metrics.
    """
    y_train = np.asarray(y_train, dtype=float)
    y_train = y_train[np.isfinite(y_train)]
    if y_train.size == 0:
        raise ValueError("y_train has no finite labels")
    y_test = np.asarray(y_test, dtype=float)
    pred = np.full_like(y_test, float(np.mean(y_train)), dtype=float)
    return {
        "rmse": rmse(y_test, pred),
        "mae": mae(y_test, pred),
        "n": int(len(y_test)),
    }
