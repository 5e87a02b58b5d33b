from pathlib import Path
import pandas as pd
from xgb_gridcv.schema import COLS


def print_section(title: str) -> None:
    """Prints a visually separated console header section."""
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


def print_df(df: pd.DataFrame, float_fmt: str = ".6g", max_rows: int | None = None) -> None:
    """Prints a DataFrame to console with a compact float format."""
    if df is None or df.empty:
        print("empty df")
        return
    if max_rows is not None:
        df = df.head(max_rows)
    print(df.to_string(index=False, float_format=lambda x: format(x, float_fmt)))


def _print_kv(d: dict[str, object], *, keys: list[str]) -> None:
    for k in keys:
        if k in d:
            print(f"{k}: {d[k]}")


def console_report(report: dict[str, object], *, top_n: int = 10) -> None:
    """
    Prints a compact tuning report.
    Expects a report dict as returned by xgb_gridcv.runner.experiment.compute_tuning_report().
    """
    meta: dict[str, object] = report["meta"]
    tuning: dict[str, object] = report["tuning"]

    print_section(f"TUNING: {meta['label']}")
    _print_kv(meta, keys=["label_col", "n_train", "n_test", "test_size", "random_state"])
    print("cv_cfg:", tuning["cv_cfg"])

    for name, table in report["tables"].items():
        failures = table.attrs.get("failures", [])
        print_section(f"STAGE {name!r}: TOP {top_n} OF {len(table)} (metric={table.attrs.get('metric')})")
        print_df(table, max_rows=top_n)
        print(results_summary(table))
        if failures:
            print(f"{len(failures)} combination(s) failed:")
            for f in failures:
                print("  " + f.describe())

    print_section("STAGE SUMMARY")
    print_df(pd.DataFrame(tuning["stages"]))

    print_section("BEST PARAMETERS")
    _print_kv(tuning, keys=["best_params", "num_boost_round", "best_test_metric_mean", "best_test_metric_std"])

    holdout = report.get("holdout")
    if holdout is not None:
        print_section("HOLDOUT: TUNED MODEL VS MEAN BASELINE")
        print_df(pd.DataFrame([{"model": "tuned", **holdout}, {"model": "mean_baseline", **report["baseline"]}]))
    else:
        print_section("HOLDOUT")
        print("No final model: no combination produced metrics.")


def save_report_csvs(report: dict[str, object], *, out_dir: Path) -> None:
    """Writes each stage table plus the stage summary and holdout scores to CSV files in out_dir."""
    out_dir.mkdir(parents=True, exist_ok=True)

    for name, table in report["tables"].items():
        table.to_csv(out_dir / f"cv_results_{name}.csv", index=False)

    pd.DataFrame(report["tuning"]["stages"]).to_csv(out_dir / "stage_summary.csv", index=False)

    holdout = report.get("holdout")
    if holdout is not None:
        pd.DataFrame(
            [{"model": "tuned", **holdout}, {"model": "mean_baseline", **report["baseline"]}]
        ).to_csv(out_dir / "holdout_scores.csv", index=False)


def results_summary(table: pd.DataFrame) -> dict[str, object]:
    """Small counts summary of one results table."""
    n = int(len(table))
    n_ok = int(table[COLS.TEST_MEAN].notna().sum()) if n else 0
    return {"n": n, "n_available": n_ok, "n_unavailable": n - n_ok, "n_skipped": int(table.attrs.get("n_skipped", 0))}
