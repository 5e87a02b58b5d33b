from pathlib import Path
import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split
from xgb_gridcv.errors import InvalidArgument
from xgb_gridcv.models.xgb_cv import import_xgboost


def load_training_frame(path: str | Path, *, label_col: str) -> pd.DataFrame:
    """Reads a CSV into a DataFrame; requires `label_col` and at least one feature column."""
    df = pd.read_csv(path)
    if df.empty:
        raise InvalidArgument(f"{path} contains no rows")
    if label_col not in df.columns:
        raise InvalidArgument(f"label column {label_col!r} not found in {path}. Got: {list(df.columns)}")
    if len(df.columns) < 2:
        raise InvalidArgument(f"{path} has no feature columns besides {label_col!r}")
    return df


def split_train_test(
    df: pd.DataFrame,
    *,
    label_col: str,
    test_size: float = 0.2,
    random_state: int = 42,
) -> tuple[pd.DataFrame, pd.DataFrame, pd.Series, pd.Series]:
    """
    Caller-side train/test split (the tuner never sees the test rows).
    Rows with a missing label are dropped first. Returns (X_train, X_test, y_train, y_test).
    """
    if label_col not in df.columns:
        raise InvalidArgument(f"label column {label_col!r} not found. Got: {list(df.columns)}")

    df2 = df.dropna(subset=[label_col])
    if len(df2) < 2:
        raise InvalidArgument(f"need at least 2 labelled rows to split, got {len(df2)}")

    X = df2.drop(columns=[label_col])
    y = df2[label_col].astype(float)
    X_tr, X_te, y_tr, y_te = train_test_split(X, y, test_size=test_size, random_state=random_state)
    return X_tr, X_te, y_tr, y_te


def make_dmatrix(X: pd.DataFrame | np.ndarray, y: pd.Series | np.ndarray | None = None):
    """Wraps features (and optional labels) in an xgboost DMatrix; NaN features are treated as missing."""
    xgb = import_xgboost()
    if len(X) == 0:
        raise InvalidArgument("cannot build a DMatrix from zero rows")
    if y is not None and len(y) != len(X):
        raise InvalidArgument(f"X has {len(X)} rows but y has {len(y)}")
    return xgb.DMatrix(X, label=y, missing=np.nan)


def n_rows(dtrain) -> int:
    """Row count of a training handle (DMatrix or anything with len())."""
    num_row = getattr(dtrain, "num_row", None)
    if callable(num_row):
        return int(num_row())
    return int(len(dtrain))
