# qba/cli.py
from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from .contingency import build_2x2, build_strata
from .io import read_table
from .metrics import observed_metrics
from .parameters import ESTIMATORS, POLICIES, load_config
from .pba import prepare_dataset, run_pba, simple_bias_analysis
from .pooling import pool_mantel_haenszel

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("qba")

    ap.add_argument("--data", required=True, help="Record-level dataset (.csv/.xlsx).")
    ap.add_argument("--config", required=True, help="JSON with bias_parameters and analysis options.")
    ap.add_argument("--mode", choices=["simple", "pba"], default="pba")

    # Overrides for the config file's "analysis" block
    ap.add_argument("--n-trials", type=int, default=None)
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--n-jobs", type=int, default=None)
    ap.add_argument("--policy", choices=list(POLICIES), default=None)
    ap.add_argument("--estimator", choices=list(ESTIMATORS), default=None)
    ap.add_argument("--covariates", nargs="*", default=None, help="Binary stratification columns.")

    ap.add_argument("--alpha", type=float, default=0.05, help="For the conventional (observed) CI.")
    ap.add_argument(
        "--include-estimates",
        action="store_true",
        help="Also print every trial estimate (pba mode).",
    )
    ap.add_argument("--log-level", default="WARNING")
    return ap


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    params, config = load_config(args.config)
    config = config.with_overrides(
        n_trials=args.n_trials,
        seed=args.seed,
        n_jobs=args.n_jobs,
        policy=args.policy,
        estimator=args.estimator,
        covariates=tuple(args.covariates) if args.covariates is not None else None,
    )

    df = read_table(args.data)
    work, outcome_col = prepare_dataset(df, params, config)
    logger.info("Loaded %d rows, %d used, outcome column '%s'", len(df), len(work), outcome_col)

    crude = build_2x2(work, outcome_col=outcome_col)
    strata = build_strata(work, outcome_col=outcome_col, covariates=config.covariates)

    observed: Dict[str, Any] = observed_metrics(crude, alpha=args.alpha)
    if config.covariates:
        observed["mh_odds_ratio"] = pool_mantel_haenszel(strata.values())

    out: Dict[str, Any] = {
        "inputs": {
            "mode": args.mode,
            "data": args.data,
            "config": args.config,
            "n_rows": int(len(df)),
            "n_used_rows": int(len(work)),
            "outcome_col": outcome_col,
            "mechanisms": params.mechanisms,
            "analysis": asdict(config),
        },
        "observed": observed,
    }

    if args.mode == "simple":
        out["adjusted"] = {"ratio": simple_bias_analysis(df, params, config)}
    else:
        res = run_pba(df, params, config)
        out["adjusted"] = res.to_dict(include_estimates=args.include_estimates)

    print(json.dumps(out, indent=2, default=str))


if __name__ == "__main__":
    main()
