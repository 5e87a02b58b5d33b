"""
Tests against the real xgboost.cv collaborator on a small synthetic problem.
"""

from dataclasses import replace

import numpy as np
import pandas as pd
import pytest
import xgboost

from xgb_gridcv.cv_config import CrossValidationConfig
from xgb_gridcv.grid import build_param_grid
from xgb_gridcv.models.xgb_cv import (
    best_iteration_from_log,
    booster_params,
    fit_final_model,
    make_xgb_params,
    metric_is_maximized,
    run_xgb_cv,
)
from xgb_gridcv.models_tuning.tuning import GridSearchRunner, tune_xgb_params_staged
from xgb_gridcv.schema import COLS
from conftest import make_eval_log


class TestParams:
    def test_overrides_win(self):
        params = make_xgb_params(params_overrides={"eta": 0.05, "max_depth": 3})
        assert params["eta"] == 0.05
        assert params["max_depth"] == 3
        assert params["objective"] == "reg:squarederror"

    def test_defaults_without_overrides(self):
        assert make_xgb_params()["max_depth"] == 6

    def test_metric_direction(self):
        assert metric_is_maximized("auc")
        assert metric_is_maximized("ndcg@5")
        assert not metric_is_maximized("rmse")
        assert not metric_is_maximized("mae")

    def test_booster_params_carry_seed_and_threads(self):
        params = booster_params({"eta": 0.1}, seed=7, nthread=2)
        assert params["seed"] == 7
        assert params["nthread"] == 2
        assert "nthread" not in booster_params({}, seed=0)

    def test_combination_seed_and_threads_win(self):
        params = booster_params({"seed": 1, "nthread": 8}, seed=7, nthread=2)
        assert params["seed"] == 1
        assert params["nthread"] == 8
        assert "seed" not in booster_params({"random_state": 3}, seed=7)


class TestBestIterationFromLog:
    def test_minimized_metric_uses_first_argmin(self):
        assert best_iteration_from_log(make_eval_log([3.0, 2.0, 2.5, 2.0]), "rmse") == 1

    def test_maximized_metric_uses_argmax(self):
        log = make_eval_log([0.7, 0.9, 0.8], metric="auc")
        assert best_iteration_from_log(log, "auc") == 1

    def test_empty_or_wrong_metric(self):
        assert best_iteration_from_log(make_eval_log([]), "rmse") is None
        assert best_iteration_from_log(make_eval_log([1.0], metric="mae"), "rmse") is None

    def test_non_finite_rounds_are_skipped(self):
        assert best_iteration_from_log(make_eval_log([1.0, np.inf, np.nan]), "rmse") == 0
        assert best_iteration_from_log(make_eval_log([np.nan, np.nan]), "rmse") is None


class TestRunXgbCv:
    def test_returns_log_and_best_iteration(self, dtrain, fast_cfg):
        outcome = run_xgb_cv({"eta": 0.3}, dtrain, fast_cfg, seed=0)
        assert isinstance(outcome.eval_log, pd.DataFrame)
        assert "test-rmse-mean" in outcome.eval_log.columns
        assert outcome.best_iteration == int(np.argmin(outcome.eval_log["test-rmse-mean"].to_numpy()))
        assert len(outcome.eval_log) <= fast_cfg.num_boost_round

    def test_same_seed_is_idempotent(self, dtrain, fast_cfg):
        a = run_xgb_cv({"eta": 0.2, "max_depth": 3}, dtrain, fast_cfg, seed=3)
        b = run_xgb_cv({"eta": 0.2, "max_depth": 3}, dtrain, fast_cfg, seed=3)
        assert a.best_iteration == b.best_iteration
        best = a.best_iteration
        assert a.eval_log["test-rmse-mean"].iloc[best] == pytest.approx(b.eval_log["test-rmse-mean"].iloc[best])

    def test_seed_reaches_booster_params(self, dtrain, monkeypatch):
        captured = {}

        def fake_cv(params, dtrain, **kwargs):
            captured["params"] = dict(params)
            captured["seed"] = kwargs["seed"]
            return make_eval_log([2.0, 1.0])

        monkeypatch.setattr(xgboost, "cv", fake_cv)
        cfg = CrossValidationConfig(nfold=3, num_boost_round=2, nthread=2)
        outcome = run_xgb_cv({"subsample": 0.8}, dtrain, cfg, seed=11)

        assert outcome.best_iteration == 1
        assert captured["seed"] == 11
        assert captured["params"]["seed"] == 11
        assert captured["params"]["nthread"] == 2
        assert captured["params"]["subsample"] == 0.8

    def test_no_early_stopping_runs_full_budget(self, dtrain):
        cfg = CrossValidationConfig(nfold=3, num_boost_round=15, early_stopping_rounds=0)
        outcome = run_xgb_cv({}, dtrain, cfg, seed=0)
        assert len(outcome.eval_log) == 15
        assert outcome.best_iteration is not None

    def test_fit_final_model(self, dtrain):
        booster = fit_final_model(dtrain, {"eta": 0.3, "max_depth": 3}, num_boost_round=10)
        assert booster.num_boosted_rounds() == 10
        with pytest.raises(ValueError):
            fit_final_model(dtrain, None, num_boost_round=0)


class TestGridSearchWithXgboost:
    def test_eta_grid(self, dtrain, fast_cfg):
        table = GridSearchRunner().run([{"eta": 0.3}, {"eta": 0.2}, {"eta": 0.1}], dtrain, fast_cfg)

        assert list(table.columns) == ["eta", *COLS.RESULT_COLS]
        assert len(table) == 3
        assert sorted(table["eta"].tolist()) == [0.1, 0.2, 0.3]
        assert table[COLS.TEST_MEAN].notna().all()
        assert table[COLS.TEST_MEAN].is_monotonic_increasing

    def test_out_of_range_param_gives_unavailable_row(self, dtrain, fast_cfg):
        combos = [{"max_depth": 3}, {"max_depth": -1}, {"max_depth": 5}]
        table = GridSearchRunner().run(combos, dtrain, fast_cfg)

        assert len(table) == 3
        assert table["max_depth"].iloc[-1] == -1
        assert pd.isna(table[COLS.TEST_MEAN].iloc[-1])
        assert table[COLS.TEST_MEAN].iloc[:2].is_monotonic_increasing
        assert len(table.attrs["failures"]) == 1

    def test_runs_are_deterministic(self, dtrain, fast_cfg):
        combos = [{"max_depth": d, "eta": 0.2, "nthread": 1} for d in (2, 4)]
        a = GridSearchRunner().run(combos, dtrain, fast_cfg)
        b = GridSearchRunner(n_jobs=2).run(combos, dtrain, fast_cfg)
        pd.testing.assert_frame_equal(a, b)

    def test_sampling_grid_does_not_depend_on_n_jobs(self, dtrain, fast_cfg):
        grid = build_param_grid({"eta": [0.3, 0.2, 0.1], "subsample": [1.0, 0.8]})
        cfg = replace(fast_cfg, nthread=2)

        seq = GridSearchRunner().run(grid, dtrain, cfg)
        for _ in range(2):
            par = GridSearchRunner(n_jobs=4).run(grid, dtrain, cfg)
            pd.testing.assert_frame_equal(seq, par)

    def test_staged_tuning_returns_int_params_that_refit(self, dtrain, fast_cfg):
        stages = [
            ("depth", {"max_depth": [2, 4], "min_child_weight": [1, 3]}),
            ("eta", {"eta": [0.3, 0.1]}),
        ]
        meta, tables = tune_xgb_params_staged(dtrain, cfg=fast_cfg, stages=stages)

        best = meta["best_params"]
        assert type(best["max_depth"]) is int
        assert type(best["min_child_weight"]) is int
        assert tables["eta"][COLS.TEST_MEAN].notna().all()

        booster = fit_final_model(dtrain, best, num_boost_round=meta["num_boost_round"])
        assert booster.num_boosted_rounds() == meta["num_boost_round"]
