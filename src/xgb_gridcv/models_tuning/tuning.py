"""
Grid search over k-fold cross-validation.

Each parameter combination is cross-validated once (xgboost.cv by default, any
callable with the same signature can be injected). The evaluation-log row at the
reported best iteration is kept, merged with the combination's parameter values,
and the rows are returned as one table sorted by a held-out metric.

A combination that fails (rejected params, numerical error, no usable best
iteration) never aborts the run: it gets a row with every metric unavailable,
sorted after all available rows, and a logged warning naming its parameters.
"""
import logging
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import Any
import numpy as np
import pandas as pd
from xgb_gridcv.cv_config import CrossValidationConfig, combination_seeds, effective_cv_config, worker_nthread
from xgb_gridcv.data import n_rows
from xgb_gridcv.errors import CollaboratorUnavailable, CombinationFailure, InvalidArgument
from xgb_gridcv.grid import build_param_grid, normalize_combinations
from xgb_gridcv.models.xgb_cv import CVOutcome, metric_is_maximized, run_xgb_cv
from xgb_gridcv.schema import COLS, eval_log_cols, require_cols
from .tuning_config import DEFAULT_CV_CONFIG, DEFAULT_STAGES

logger = logging.getLogger(__name__)

CVFunction = Callable[[dict[str, Any], Any, CrossValidationConfig, int], CVOutcome]
_Evaluated = tuple[dict[str, Any] | None, CombinationFailure | None]


def extract_best_row(outcome: CVOutcome, metric: str) -> dict[str, Any] | None:
    """
    Selects the evaluation-log row at the best iteration and renames it onto
    COLS.RESULT_COLS. None if the collaborator reported no best iteration.
    """
    if outcome.best_iteration is None:
        return None

    log = outcome.eval_log
    mapping = eval_log_cols(metric)
    require_cols(list(log.columns), mapping.keys(), context="extract_best_row")

    pos = int(outcome.best_iteration)
    if pos < 0 or pos >= len(log):
        raise ValueError(f"best_iteration {pos} is outside the evaluation log (rows={len(log)})")

    out: dict[str, Any] = {COLS.ITERATION: pos}
    for src, dst in mapping.items():
        out[dst] = float(log[src].iloc[pos])

    if not np.isfinite(out[COLS.TEST_MEAN]):
        return None
    return out


class GridSearchRunner:
    """
    Runs one cross-validation per parameter combination and tabulates the best rounds.

    cv_fn:        collaborator (params, dtrain, cfg, seed) -> CVOutcome.
    sort_by:      one of COLS.RESULT_COLS.
    ascending:    None picks ascending for minimized metrics, descending for maximized ones.
    n_jobs:       > 1 runs combinations on a thread pool; at a fixed cfg.nthread the output is
                  identical to n_jobs=1. Unless cfg.nthread is set, each worker gets
                  cpu_count // n_jobs booster threads.
    progress:     called with the completed fraction after each combination.
    should_stop:  polled between combinations; when True the partial table is returned.
    """

    def __init__(
        self,
        cv_fn: CVFunction = run_xgb_cv,
        *,
        sort_by: str = COLS.TEST_MEAN,
        ascending: bool | None = None,
        n_jobs: int = 1,
        progress: Callable[[float], None] | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        if int(n_jobs) < 1:
            raise InvalidArgument(f"n_jobs must be >= 1, got {n_jobs}")
        self.cv_fn = cv_fn
        self.sort_by = sort_by
        self.ascending = ascending
        self.n_jobs = int(n_jobs)
        self.progress = progress
        self.should_stop = should_stop

    def run(
        self,
        combinations: pd.DataFrame | Sequence[Mapping[str, Any]],
        dtrain,
        cfg: CrossValidationConfig,
    ) -> pd.DataFrame:
        if not callable(self.cv_fn):
            raise CollaboratorUnavailable(f"cross-validation function is not callable: {self.cv_fn!r}")

        cfg = effective_cv_config(cfg)

        if self.sort_by not in COLS.RESULT_COLS:
            raise InvalidArgument(
                f"sort_by must be one of {list(COLS.RESULT_COLS)}, got {self.sort_by!r}"
            )

        rows, param_cols = normalize_combinations(combinations)
        if not rows:
            raise InvalidArgument("combinations must contain at least one parameter combination")

        clash = [c for c in param_cols if c in COLS.RESULT_COLS]
        if clash:
            raise InvalidArgument(f"parameter names collide with result columns: {clash}")

        if n_rows(dtrain) == 0:
            raise InvalidArgument("training set is empty")

        n = len(rows)
        if self.n_jobs > 1 and n > 1 and cfg.nthread is None:
            # workers share the cores instead of each claiming all of them
            cfg = replace(cfg, nthread=worker_nthread(min(self.n_jobs, n)))
        seeds = combination_seeds(cfg, n)
        logger.info(
            "Grid search: %d combinations, nfold=%d, num_boost_round=%d, early_stopping_rounds=%d, "
            "metric=%s, seed=%d (%s), n_jobs=%d, nthread=%s",
            n, cfg.nfold, cfg.num_boost_round, cfg.early_stopping_rounds,
            cfg.eval_metric, cfg.seed, cfg.seed_policy, self.n_jobs, cfg.nthread,
        )

        if self.n_jobs > 1 and n > 1:
            done = self._run_parallel(rows, seeds, dtrain, cfg)
        else:
            done = self._run_sequential(rows, seeds, dtrain, cfg)

        n_skipped = n - len(done)
        if n_skipped:
            logger.info("Stop requested: returning %d of %d combinations (%d skipped)", len(done), n, n_skipped)

        return self._assemble(rows, param_cols, done, cfg, n_skipped=n_skipped)

    def _stop_requested(self) -> bool:
        return self.should_stop is not None and bool(self.should_stop())

    def _report_progress(self, n_done: int, n_total: int) -> None:
        if self.progress is None:
            return
        try:
            self.progress(n_done / n_total)
        except Exception:
            logger.warning("Progress callback raised; ignoring", exc_info=True)

    def _evaluate_one(
        self,
        pos: int,
        params: dict[str, Any],
        dtrain,
        cfg: CrossValidationConfig,
        seed: int,
    ) -> _Evaluated:
        try:
            outcome = self.cv_fn(dict(params), dtrain, cfg, seed)
            best = extract_best_row(outcome, cfg.eval_metric)
        except CollaboratorUnavailable:
            raise
        except Exception as exc:
            failure = CombinationFailure(pos, dict(params), f"{type(exc).__name__}: {exc}")
            logger.warning("Cross-validation failed for %s", failure.describe())
            logger.debug("Traceback for combination #%d", pos, exc_info=True)
            return None, failure

        if best is None:
            failure = CombinationFailure(pos, dict(params), "no usable best iteration reported")
            logger.warning("Cross-validation failed for %s", failure.describe())
            return None, failure

        logger.debug("combination #%d %s -> %s", pos, params, best)
        return best, None

    def _run_sequential(self, rows, seeds, dtrain, cfg) -> dict[int, _Evaluated]:
        done: dict[int, _Evaluated] = {}
        for pos, (params, seed) in enumerate(zip(rows, seeds)):
            if self._stop_requested():
                break
            done[pos] = self._evaluate_one(pos, params, dtrain, cfg, seed)
            self._report_progress(len(done), len(rows))
        return done

    def _run_parallel(self, rows, seeds, dtrain, cfg) -> dict[int, _Evaluated]:
        # dtrain is shared read-only by all workers.
        done: dict[int, _Evaluated] = {}
        todo = iter(enumerate(zip(rows, seeds)))
        stopped = False

        with ThreadPoolExecutor(max_workers=self.n_jobs) as pool:
            positions = {}
            pending = set()
            while True:
                while not stopped and len(pending) < self.n_jobs:
                    nxt = next(todo, None)
                    if nxt is None:
                        break
                    if self._stop_requested():
                        stopped = True
                        break
                    pos, (params, seed) = nxt
                    fut = pool.submit(self._evaluate_one, pos, params, dtrain, cfg, seed)
                    positions[fut] = pos
                    pending.add(fut)

                if not pending:
                    break

                finished, pending = wait(pending, return_when=FIRST_COMPLETED)
                for fut in finished:
                    done[positions.pop(fut)] = fut.result()
                    self._report_progress(len(done), len(rows))

        return done

    def _assemble(
        self,
        rows: list[dict[str, Any]],
        param_cols: list[str],
        done: dict[int, _Evaluated],
        cfg: CrossValidationConfig,
        *,
        n_skipped: int,
    ) -> pd.DataFrame:
        records: list[dict[str, Any]] = []
        iterations: list[int | None] = []
        failures: list[CombinationFailure] = []

        # input order first, so the stable sort breaks ties by input position
        for pos in sorted(done):
            best, failure = done[pos]
            rec: dict[str, Any] = {c: rows[pos].get(c, np.nan) for c in param_cols}
            if best is None:
                rec.update({c: np.nan for c in COLS.METRIC_COLS})
                iterations.append(None)
                failures.append(failure)
            else:
                rec.update({c: best[c] for c in COLS.METRIC_COLS})
                iterations.append(int(best[COLS.ITERATION]))
            records.append(rec)

        table = pd.DataFrame.from_records(records, columns=param_cols + list(COLS.METRIC_COLS))
        table.insert(len(param_cols), COLS.ITERATION, pd.array(iterations, dtype="Int64"))
        for c in COLS.METRIC_COLS:
            table[c] = table[c].astype(float)

        ascending = self.ascending
        if ascending is None:
            ascending = not (self.sort_by in COLS.METRIC_COLS and metric_is_maximized(cfg.eval_metric))

        table = (
            table.sort_values(self.sort_by, ascending=ascending, na_position="last", kind="mergesort")
            .reset_index(drop=True)
        )
        table.attrs["metric"] = cfg.eval_metric
        table.attrs["sort_by"] = self.sort_by
        table.attrs["failures"] = failures
        table.attrs["n_skipped"] = int(n_skipped)
        return table


def grid_search_cv(
    combinations: pd.DataFrame | Sequence[Mapping[str, Any]],
    dtrain,
    cfg: CrossValidationConfig = DEFAULT_CV_CONFIG,
    **runner_kwargs: Any,
) -> pd.DataFrame:
    """Functional shorthand for GridSearchRunner(**runner_kwargs).run(...)."""
    return GridSearchRunner(**runner_kwargs).run(combinations, dtrain, cfg)


def select_best(table: pd.DataFrame, param_cols: Sequence[str]) -> dict[str, Any]:
    """
    Best (first available) row of a sorted results table, as a meta dict.
    best_params is None when no combination produced metrics.
    """
    avail = table[table[COLS.TEST_MEAN].notna()]
    meta: dict[str, Any] = {
        "metric": table.attrs.get("metric"),
        "n_candidates": int(len(table)),
        "n_failed": int(len(table) - len(avail)),
        "best_params": None,
        "best_iteration": None,
        "num_boost_round": None,
        "best_test_metric_mean": float("nan"),
        "best_test_metric_std": float("nan"),
    }
    if avail.empty:
        return meta

    # read cell by cell: a whole row of mixed dtypes upcasts ints to float
    best_params: dict[str, Any] = {}
    for c in param_cols:
        v = avail[c].iloc[0]
        if pd.isna(v):
            continue
        best_params[c] = v.item() if isinstance(v, np.generic) else v

    best_it = int(avail[COLS.ITERATION].iloc[0])
    meta.update(
        best_params=best_params,
        best_iteration=best_it,
        num_boost_round=best_it + 1,
        best_test_metric_mean=float(avail[COLS.TEST_MEAN].iloc[0]),
        best_test_metric_std=float(avail[COLS.TEST_STD].iloc[0]),
    )
    return meta


def tune_xgb_params_cv(
    combinations: pd.DataFrame | Sequence[Mapping[str, Any]],
    dtrain,
    *,
    cfg: CrossValidationConfig = DEFAULT_CV_CONFIG,
    runner: GridSearchRunner | None = None,
) -> tuple[dict[str, Any], pd.DataFrame]:
    """
    Scores every combination by k-fold CV and returns (best_meta, table).
    """
    runner = runner or GridSearchRunner()
    table = runner.run(combinations, dtrain, cfg)
    _rows, param_cols = normalize_combinations(combinations)
    return select_best(table, param_cols), table


def tune_xgb_params_staged(
    dtrain,
    *,
    cfg: CrossValidationConfig = DEFAULT_CV_CONFIG,
    stages: Sequence[tuple[str, Mapping[str, Sequence[Any]]]] | None = None,
    base_params: Mapping[str, Any] | None = None,
    runner: GridSearchRunner | None = None,
) -> tuple[dict[str, Any], dict[str, pd.DataFrame]]:
    """
    Tunes one small grid at a time. Each stage's grid runs with the best values
    of all earlier stages (and base_params) held fixed; those fixed values show up
    as leading constant columns in that stage's table.

    Returns (best_meta, tables_by_stage). best_meta["num_boost_round"] comes from
    the last stage that produced any metrics.
    """
    runner = runner or GridSearchRunner()
    stages = list(DEFAULT_STAGES if stages is None else stages)
    if not stages:
        raise InvalidArgument("stages must contain at least one (name, grid) pair")

    fixed: dict[str, Any] = dict(base_params or {})
    tables: dict[str, pd.DataFrame] = {}
    stage_rows: list[dict[str, Any]] = []
    last_ok: dict[str, Any] | None = None

    for name, grid in stages:
        combos = build_param_grid(grid)
        for k, v in reversed([(k, v) for k, v in fixed.items() if k not in combos.columns]):
            combos.insert(0, k, v)

        logger.info("Stage %r: %d combinations, fixed=%s", name, len(combos), fixed)
        table = runner.run(combos, dtrain, cfg)
        tables[name] = table

        best = select_best(table, list(grid.keys()))
        stage_rows.append(
            {
                "stage": name,
                "n_candidates": best["n_candidates"],
                "n_failed": best["n_failed"],
                "best_params": best["best_params"],
                "best_test_metric_mean": best["best_test_metric_mean"],
                "num_boost_round": best["num_boost_round"],
            }
        )

        if best["best_params"] is None:
            logger.warning("Stage %r produced no usable metrics; keeping %s", name, fixed)
            continue

        fixed.update(best["best_params"])
        last_ok = best

    best_meta: dict[str, Any] = {
        "best_params": fixed,
        "metric": cfg.eval_metric,
        "best_iteration": None if last_ok is None else last_ok["best_iteration"],
        "num_boost_round": None if last_ok is None else last_ok["num_boost_round"],
        "best_test_metric_mean": float("nan") if last_ok is None else last_ok["best_test_metric_mean"],
        "best_test_metric_std": float("nan") if last_ok is None else last_ok["best_test_metric_std"],
        "stages": stage_rows,
        "cv_cfg": {
            "nfold": cfg.nfold,
            "num_boost_round": cfg.num_boost_round,
            "early_stopping_rounds": cfg.early_stopping_rounds,
            "eval_metric": cfg.eval_metric,
            "seed": cfg.seed,
            "seed_policy": cfg.seed_policy,
            "nthread": cfg.nthread,
        },
    }
    return best_meta, tables
