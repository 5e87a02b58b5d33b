"""
End-to-end tests for the experiment report, console/CSV output and the CLI.
"""

import pandas as pd
import pytest

from xgb_gridcv.cv_config import CrossValidationConfig
from xgb_gridcv.models_tuning.tuning import GridSearchRunner
from xgb_gridcv.runner.experiment import compute_tuning_report
from xgb_gridcv.runner.progress import TqdmProgress
from xgb_gridcv.runner.report_io import console_report, results_summary, save_report_csvs
from xgb_gridcv.runner.runner_script import build_parser, main
from xgb_gridcv.schema import COLS

SMALL_STAGES = [
    ("depth", {"max_depth": [2, 4], "min_child_weight": [1, 5]}),
    ("eta", {"eta": [0.3, 0.1]}),
]


@pytest.fixture(scope="module")
def report(regression_frame):
    cfg = CrossValidationConfig(nfold=3, num_boost_round=40, early_stopping_rounds=5, seed=0)
    return compute_tuning_report(
        regression_frame,
        label_col="y",
        label="synthetic",
        cfg=cfg,
        stages=SMALL_STAGES,
        test_size=0.25,
        random_state=0,
    )


class TestComputeTuningReport:
    def test_report_shape(self, report):
        assert set(report) == {"tuning", "tables", "holdout", "baseline", "meta"}
        assert list(report["tables"]) == ["depth", "eta"]
        assert len(report["tables"]["depth"]) == 4
        assert len(report["tables"]["eta"]) == 2
        assert report["meta"]["n_train"] + report["meta"]["n_test"] == 300

    def test_best_params_cover_every_stage(self, report):
        best = report["tuning"]["best_params"]
        assert set(best) == {"max_depth", "min_child_weight", "eta"}
        assert report["tuning"]["num_boost_round"] >= 1
        assert type(best["max_depth"]) is int
        assert type(best["min_child_weight"]) is int

    def test_eta_stage_holds_depth_fixed(self, report):
        eta_table = report["tables"]["eta"]
        best = report["tuning"]["best_params"]
        assert (eta_table["max_depth"] == best["max_depth"]).all()
        assert (eta_table["min_child_weight"] == best["min_child_weight"]).all()

    def test_holdout_beats_mean_baseline(self, report):
        assert report["holdout"]["rmse"] < report["baseline"]["rmse"]


class TestReportIO:
    def test_console_report(self, report, capsys):
        console_report(report, top_n=3)
        out = capsys.readouterr().out
        assert "TUNING: synthetic" in out
        assert "STAGE 'depth'" in out
        assert "BEST PARAMETERS" in out
        assert "mean_baseline" in out

    def test_save_report_csvs(self, report, tmp_path):
        save_report_csvs(report, out_dir=tmp_path / "out")
        names = sorted(p.name for p in (tmp_path / "out").iterdir())
        assert names == ["cv_results_depth.csv", "cv_results_eta.csv", "holdout_scores.csv", "stage_summary.csv"]
        depth = pd.read_csv(tmp_path / "out" / "cv_results_depth.csv")
        assert list(depth.columns) == ["max_depth", "min_child_weight", *COLS.RESULT_COLS]

    def test_results_summary(self, report):
        assert results_summary(report["tables"]["depth"]) == {
            "n": 4, "n_available": 4, "n_unavailable": 0, "n_skipped": 0,
        }


class TestProgress:
    def test_tracks_fraction_and_restarts(self):
        with TqdmProgress(total=4, disable=True) as progress:
            progress(0.5)
            assert progress.n == 2
            progress(1.0)
            assert progress.n == 4
            progress(0.25)
            assert progress.n == 1

    def test_drives_runner(self, dtrain):
        cfg = CrossValidationConfig(nfold=3, num_boost_round=10, early_stopping_rounds=3)
        with TqdmProgress(total=2, disable=True) as progress:
            GridSearchRunner(progress=progress).run([{"eta": 0.3}, {"eta": 0.1}], dtrain, cfg)
            assert progress.n == 2


class TestCli:
    def test_parser_defaults(self):
        args = build_parser().parse_args(["data.csv", "--label", "y"])
        assert args.nfold == 10
        assert args.stages == ["depth", "sampling", "eta"]
        assert args.seed_policy == "fixed"
        assert args.nthread is None

    def test_main_runs_eta_stage(self, regression_frame, tmp_path, capsys):
        path = tmp_path / "train.csv"
        regression_frame.to_csv(path, index=False)
        out_dir = tmp_path / "results"

        main([
            str(path), "--label", "y",
            "--stages", "eta",
            "--nfold", "3",
            "--num-boost-round", "20",
            "--early-stopping-rounds", "5",
            "--n-jobs", "2",
            "--no-progress",
            "--out-dir", str(out_dir),
            "--log-level", "WARNING",
        ])

        out = capsys.readouterr().out
        assert "STAGE 'eta'" in out
        table = pd.read_csv(out_dir / "cv_results_eta.csv")
        assert len(table) == 6
        assert table[COLS.TEST_MEAN].notna().all()
