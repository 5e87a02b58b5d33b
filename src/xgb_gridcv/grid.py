"""
Parameter tables.

A combination is one row: {hyperparameter name: scalar}. Callers can pass either
a DataFrame (one row per combination) or a sequence of mappings; both are
normalized to a list of plain dicts plus the ordered parameter column names.
"""
import itertools
from collections.abc import Mapping, Sequence
from typing import Any
import numpy as np
import pandas as pd
from xgb_gridcv.errors import InvalidArgument


def build_param_grid(grid: Mapping[str, Sequence[Any]]) -> pd.DataFrame:
    """
    Cartesian product of candidate values, one row per combination.
    The first parameter varies slowest, matching nested for-loops in key order.
    """
    if not grid:
        raise InvalidArgument("grid must name at least one hyperparameter")

    names = list(grid.keys())
    values: list[list[Any]] = []
    for name in names:
        cand = list(grid[name])
        if not cand:
            raise InvalidArgument(f"grid[{name!r}] has no candidate values")
        values.append(cand)

    rows = [dict(zip(names, combo)) for combo in itertools.product(*values)]
    return pd.DataFrame(rows, columns=names)


def _to_scalar(v: Any) -> Any:
    """Unwraps numpy scalars so params passed to the booster are plain Python values."""
    if isinstance(v, np.generic):
        return v.item()
    return v


def normalize_combinations(
    combinations: pd.DataFrame | Sequence[Mapping[str, Any]],
) -> tuple[list[dict[str, Any]], list[str]]:
    """
    Returns (rows, param_cols). NaN cells of a DataFrame are dropped from that
    row's dict, so the booster default applies for that parameter.
    """
    if isinstance(combinations, pd.DataFrame):
        param_cols = [str(c) for c in combinations.columns]
        rows: list[dict[str, Any]] = []
        for rec in combinations.to_dict(orient="records"):
            rows.append({str(k): _to_scalar(v) for k, v in rec.items() if not _is_missing(v)})
        return rows, param_cols

    if isinstance(combinations, (str, bytes)) or not isinstance(combinations, Sequence):
        raise InvalidArgument(
            f"combinations must be a DataFrame or a sequence of mappings, got {type(combinations).__name__}"
        )

    param_cols = []
    seen: set[str] = set()
    rows = []
    for i, combo in enumerate(combinations):
        if not isinstance(combo, Mapping):
            raise InvalidArgument(f"combination #{i} is not a mapping: {combo!r}")
        row = {str(k): _to_scalar(v) for k, v in combo.items()}
        for k in row:
            if k not in seen:
                seen.add(k)
                param_cols.append(k)
        rows.append(row)
    return rows, param_cols


def _is_missing(v: Any) -> bool:
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False
