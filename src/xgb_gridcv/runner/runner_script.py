"""
Command-line entry point.

    python -m xgb_gridcv.runner.runner_script housing.csv --label price --n-jobs 4 --out-dir results/
"""
import argparse
import logging
from pathlib import Path
import pandas as pd
from xgb_gridcv.cv_config import CrossValidationConfig
from xgb_gridcv.data import load_training_frame
from xgb_gridcv.models_tuning.tuning import GridSearchRunner
from xgb_gridcv.models_tuning.tuning_config import DEFAULT_CV_CONFIG, DEFAULT_STAGES
from xgb_gridcv.runner.experiment import compute_tuning_report
from xgb_gridcv.runner.progress import TqdmProgress
from xgb_gridcv.runner.report_io import console_report, print_section, save_report_csvs

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_experiment(
    base: pd.DataFrame,
    *,
    out_dir: Path | None = None,
    **kwargs,
) -> dict[str, object]:
    report = compute_tuning_report(base, **kwargs)

    console_report(report)

    if out_dir is not None:
        save_report_csvs(report, out_dir=out_dir)

    return report


def build_parser() -> argparse.ArgumentParser:
    d = DEFAULT_CV_CONFIG
    stage_names = [name for name, _grid in DEFAULT_STAGES]

    parser = argparse.ArgumentParser(
        prog="xgb_gridcv",
        description="Staged grid search over xgboost k-fold cross-validation",
    )
    parser.add_argument("csv", type=Path, help="Training data (CSV with a header row)")
    parser.add_argument("--label", required=True, help="Label column name")
    parser.add_argument("--nfold", type=int, default=d.nfold, help=f"CV folds (default: {d.nfold})")
    parser.add_argument(
        "--num-boost-round", type=int, default=d.num_boost_round,
        help=f"Maximum boosting rounds (default: {d.num_boost_round})",
    )
    parser.add_argument(
        "--early-stopping-rounds", type=int, default=d.early_stopping_rounds,
        help=f"Rounds without held-out improvement before stopping (default: {d.early_stopping_rounds})",
    )
    parser.add_argument("--metric", default=d.eval_metric, help=f"xgboost eval metric (default: {d.eval_metric})")
    parser.add_argument("--seed", type=int, default=d.seed, help=f"Fold-assignment and sampling seed (default: {d.seed})")
    parser.add_argument(
        "--seed-policy", choices=["fixed", "per_combination"], default=d.seed_policy,
        help=f"Same seed for every combination, or seed + position (default: {d.seed_policy})",
    )
    parser.add_argument(
        "--stages", nargs="+", choices=stage_names, default=stage_names,
        help="Tuning stages to run, in order (default: all)",
    )
    parser.add_argument("--n-jobs", type=int, default=1, help="Combinations cross-validated concurrently")
    parser.add_argument(
        "--nthread", type=int, default=None,
        help="Booster threads per cross-validation (default: all cores, split across --n-jobs workers)",
    )
    parser.add_argument("--test-size", type=float, default=0.2, help="Held-out test fraction (default: 0.2)")
    parser.add_argument("--random-state", type=int, default=42, help="Train/test split seed (default: 42)")
    parser.add_argument("--out-dir", type=Path, default=None, help="Write result CSVs here")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    cfg = CrossValidationConfig(
        nfold=args.nfold,
        num_boost_round=args.num_boost_round,
        early_stopping_rounds=args.early_stopping_rounds,
        eval_metric=args.metric,
        seed=args.seed,
        seed_policy=args.seed_policy,
        nthread=args.nthread,
    )
    grids = dict(DEFAULT_STAGES)
    stages = [(name, grids[name]) for name in args.stages]
    logger.info("Stages: %s", args.stages)

    print_section("LOAD TRAINING DATA")
    base = load_training_frame(args.csv, label_col=args.label)
    print(f"Loaded {args.csv}: rows={len(base)} cols={len(base.columns)}")

    with TqdmProgress(desc="grid search", disable=args.no_progress) as progress:
        runner = GridSearchRunner(n_jobs=args.n_jobs, progress=progress)
        run_experiment(
            base,
            label_col=args.label,
            label=args.csv.stem,
            cfg=cfg,
            stages=stages,
            test_size=args.test_size,
            random_state=args.random_state,
            runner=runner,
            out_dir=args.out_dir,
        )


if __name__ == "__main__":
    main()
