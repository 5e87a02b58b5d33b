import os
from dataclasses import dataclass, replace
from typing import Literal
from xgb_gridcv.errors import InvalidArgument

@dataclass(frozen=True)
class CrossValidationConfig:
    # Settings shared by every combination of one grid-search run.
    nfold: int = 10
    num_boost_round: int = 500
    early_stopping_rounds: int = 10   # rounds without held-out improvement before stopping

    eval_metric: str = "rmse"
    shuffle: bool = True

    # Seed policy for fold assignment and booster row/column sampling.
    # - "fixed": every combination uses `seed`, so all combinations see the same folds.
    # - "per_combination": combination i (input position) uses `seed + i`.
    seed: int = 0
    seed_policy: Literal["fixed", "per_combination"] = "fixed"

    # Booster threads per cross-validation. None leaves xgboost's default
    # (all cores) for a sequential run; a parallel run splits the cores across workers.
    nthread: int | None = None


def validate_cv_config(cfg: CrossValidationConfig) -> None:
    if int(cfg.nfold) < 2:
        raise InvalidArgument(f"nfold must be >= 2, got {cfg.nfold}")

    if int(cfg.num_boost_round) <= 0:
        raise InvalidArgument(f"num_boost_round must be > 0, got {cfg.num_boost_round}")

    if int(cfg.early_stopping_rounds) < 0:
        raise InvalidArgument(f"early_stopping_rounds must be >= 0, got {cfg.early_stopping_rounds}")

    if int(cfg.seed) < 0:
        raise InvalidArgument(f"seed must be >= 0, got {cfg.seed}")

    policy = str(cfg.seed_policy).lower().strip()
    if policy not in ("fixed", "per_combination"):
        raise InvalidArgument(f"seed_policy must be 'fixed' or 'per_combination', got {cfg.seed_policy!r}")

    if not str(cfg.eval_metric).strip():
        raise InvalidArgument("eval_metric must be a non-empty metric name")

    if cfg.nthread is not None and int(cfg.nthread) < 1:
        raise InvalidArgument(f"nthread must be >= 1 or None, got {cfg.nthread}")


def effective_cv_config(cfg: CrossValidationConfig) -> CrossValidationConfig:
    """
    Validates and returns a normalized copy (lower-cased policy and metric, int fields).
    """
    validate_cv_config(cfg)
    return replace(
        cfg,
        nfold=int(cfg.nfold),
        num_boost_round=int(cfg.num_boost_round),
        early_stopping_rounds=int(cfg.early_stopping_rounds),
        seed=int(cfg.seed),
        seed_policy=str(cfg.seed_policy).lower().strip(),
        eval_metric=str(cfg.eval_metric).strip(),
        nthread=None if cfg.nthread is None else int(cfg.nthread),
    )


def combination_seeds(cfg: CrossValidationConfig, n: int) -> list[int]:
    """
    Seed for each of `n` combinations, by input position.
    Fixed up front so results never depend on execution order or concurrency.
    """
    cfg = effective_cv_config(cfg)
    if cfg.seed_policy == "per_combination":
        return [cfg.seed + i for i in range(int(n))]
    return [cfg.seed] * int(n)


def worker_nthread(n_jobs: int, cpu_count: int | None = None) -> int:
    """Booster threads for each of `n_jobs` concurrent cross-validations."""
    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    return max(1, int(cpus) // max(1, int(n_jobs)))
