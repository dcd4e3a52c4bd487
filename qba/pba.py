# qba/pba.py
"""
Probabilistic bias analysis driver.

Each trial draws one set of bias parameters, bootstraps the dataset and
runs the correction pipeline on the resample:

    strata tables -> misclassification correction (table or record level)
      -> Mantel-Haenszel pooling or weighted logistic fit
      -> selection / confounding formulas

Randomness comes from one base seed: SeedSequence(seed).spawn(n_trials)
gives trial i its own child, which spawns private streams for the
parameter draw, the bootstrap and the record imputation. Estimates are
therefore identical whatever the worker count or completion order.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .contingency import StratumKey, build_strata
from .errors import (
    AnalysisCancelled,
    NegativeCorrectedCount,
    TRIAL_ERRORS,
    UndefinedAdjustment,
    UndefinedPooling,
)
from .formulas import adjust_for_confounding, adjust_ratio
from .imputation import impute_outcomes
from .io import validate_dataset
from .logistic import exposure_odds_ratio
from .misclassification import Classification, correct_contingency, predictive_values
from .parameters import AnalysisConfig, BiasParameters
from .pooling import pool_mantel_haenszel

logger = logging.getLogger(__name__)

IMPUTED_COL = "_y_imputed"


@dataclass(frozen=True)
class SimulationResult:
    estimates: np.ndarray
    point_estimate: float
    ci_low: float
    ci_high: float
    n_trials: int
    n_trials_used: int
    n_trials_failed: int
    policy: str
    seed: int
    percentiles: Tuple[float, float] = (2.5, 97.5)

    def to_dict(self, include_estimates: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "point_estimate": self.point_estimate,
            "ci_low": self.ci_low,
            "ci_high": self.ci_high,
            "n_trials": self.n_trials,
            "n_trials_used": self.n_trials_used,
            "n_trials_failed": self.n_trials_failed,
            "policy": self.policy,
            "seed": self.seed,
            "percentiles": list(self.percentiles),
        }
        if include_estimates:
            out["estimates"] = [float(x) for x in self.estimates]
        return out


@dataclass(frozen=True)
class _Draw:
    selection: Optional[Dict[str, float]]
    classification: Optional[Dict[StratumKey, Classification]]
    confounding: Optional[Dict[str, float]]


def _draw(
    params: BiasParameters, rng: Optional[np.random.Generator], keys: List[StratumKey]
) -> _Draw:
    # one fixed draw order per trial: selection, misclassification, confounding
    return _Draw(
        selection=params.selection.draw(rng) if params.selection else None,
        classification=params.misclassification.draw(rng, keys) if params.misclassification else None,
        confounding=params.confounding.draw(rng) if params.confounding else None,
    )


def prepare_dataset(
    df: pd.DataFrame, params: BiasParameters, config: AnalysisConfig
) -> Tuple[pd.DataFrame, str]:
    """
    Validates the dataset, restricts it to selected records when an 's'
    column is present and keeps only the columns the pipeline reads.
    """
    outcome_col = validate_dataset(df, outcome_col=config.outcome_col, covariates=config.covariates)

    if (
        params.misclassification is not None
        and config.estimator == "logit"
        and config.misclassification_level == "table"
    ):
        raise ValueError("estimator='logit' needs misclassification_level='record'.")

    work = df
    if "s" in work.columns:
        work = work[work["s"] == 1]
        logger.debug("Restricted to %d selected records (of %d)", len(work), len(df))

    cols = ["a", outcome_col] + list(config.covariates)
    work = work[cols].astype(int).reset_index(drop=True)
    if work.empty:
        raise ValueError("No records left to analyse.")
    return work, outcome_col


def _selection_weights(df: pd.DataFrame, outcome_col: str, sel: Dict[str, float]) -> np.ndarray:
    """Inverse selection probability 1/S[a, y] for every record."""
    s = np.array([[sel["S00"], sel["S01"]], [sel["S10"], sel["S11"]]], dtype=float)
    if np.any(s <= 0):
        raise UndefinedAdjustment(f"Selection probabilities must be > 0 for weighting, got {sel}")
    return 1.0 / s[df["a"].to_numpy(), df[outcome_col].to_numpy()]


def corrected_estimate(
    df: pd.DataFrame,
    outcome_col: str,
    drawn: _Draw,
    config: AnalysisConfig,
    impute_rng: Optional[np.random.Generator] = None,
) -> float:
    """One pass of the correction pipeline with fixed parameter values."""
    covariates = list(config.covariates)
    tables = build_strata(df, outcome_col=outcome_col, covariates=covariates)

    if drawn.classification is None:
        corrected = {k: t.as_corrected() for k, t in tables.items()}
    else:
        corrected = {k: correct_contingency(t, drawn.classification[k]) for k, t in tables.items()}

        if config.misclassification_level == "record":
            if impute_rng is None:
                raise ValueError("Record-level correction needs a random source.")
            pv = {
                k: predictive_values(
                    corrected[k], tables[k], drawn.classification[k],
                    negative_counts=config.negative_counts,
                )
                for k in tables
            }
            df = df.assign(
                **{IMPUTED_COL: impute_outcomes(df, pv, impute_rng, outcome_col=outcome_col, covariates=covariates)}
            )
            outcome_col = IMPUTED_COL
            tables = build_strata(df, outcome_col=outcome_col, covariates=covariates)
            corrected = {k: t.as_corrected() for k, t in tables.items()}
        elif config.negative_counts == "error":
            bad = {k: c for k, c in corrected.items() if c.has_negative}
            if bad:
                raise NegativeCorrectedCount(f"Corrected tables have negative cells: {bad}")

    if config.estimator == "mh":
        ratio = pool_mantel_haenszel(corrected.values())
        if drawn.selection is not None:
            ratio = adjust_ratio(ratio, **drawn.selection)
    else:
        weights = None
        if drawn.selection is not None:
            weights = _selection_weights(df, outcome_col, drawn.selection)
        ratio = exposure_odds_ratio(df, outcome_col, "a", covariates, weights)

    if drawn.confounding is not None:
        ratio = adjust_for_confounding(ratio, **drawn.confounding)

    return float(ratio)


def simple_bias_analysis(
    df: pd.DataFrame,
    params: BiasParameters,
    config: Optional[AnalysisConfig] = None,
) -> float:
    """
    Deterministic bias analysis: one pass over the full dataset with every
    parameter at its fixed value (distributions contribute their mode/centre).
    """
    config = config or AnalysisConfig()
    work, outcome_col = prepare_dataset(df, params, config)
    keys = list(build_strata(work, outcome_col=outcome_col, covariates=config.covariates))
    drawn = _draw(params, None, keys)
    rng = np.random.default_rng(config.seed)
    return corrected_estimate(work, outcome_col, drawn, config, impute_rng=rng)


def _run_trial(
    seq: np.random.SeedSequence,
    df: pd.DataFrame,
    outcome_col: str,
    keys: List[StratumKey],
    params: BiasParameters,
    config: AnalysisConfig,
) -> float:
    draw_ss, boot_ss, impute_ss = seq.spawn(3)

    drawn = _draw(params, np.random.default_rng(draw_ss), keys)

    sample = df
    if config.bootstrap:
        n = len(df)
        idx = np.random.default_rng(boot_ss).integers(0, n, size=n)
        sample = df.iloc[idx].reset_index(drop=True)

    return corrected_estimate(
        sample, outcome_col, drawn, config, impute_rng=np.random.default_rng(impute_ss)
    )


def _run_block(
    indices: Sequence[int],
    seqs: Sequence[np.random.SeedSequence],
    df: pd.DataFrame,
    outcome_col: str,
    keys: List[StratumKey],
    params: BiasParameters,
    config: AnalysisConfig,
) -> List[Tuple[int, float, Optional[Exception]]]:
    """Runs a block of trials in a worker; trial errors are returned, not raised."""
    out: List[Tuple[int, float, Optional[Exception]]] = []
    for i, seq in zip(indices, seqs):
        try:
            out.append((i, _run_trial(seq, df, outcome_col, keys, params, config), None))
        except TRIAL_ERRORS as e:
            out.append((i, float("nan"), e))
    return out


def summarize(
    estimates: np.ndarray,
    *,
    policy: str,
    seed: int,
    percentiles: Tuple[float, float] = (2.5, 97.5),
) -> SimulationResult:
    """Median and percentile interval over the defined (non-NaN) trials."""
    estimates = np.asarray(estimates, dtype=float).copy()
    estimates.setflags(write=False)

    defined = estimates[~np.isnan(estimates)]
    n_failed = int(estimates.size - defined.size)
    if defined.size == 0:
        raise UndefinedPooling(f"None of the {estimates.size} trials produced a defined estimate.")

    lo, hi = np.percentile(defined, percentiles)
    return SimulationResult(
        estimates=estimates,
        point_estimate=float(np.median(defined)),
        ci_low=float(lo),
        ci_high=float(hi),
        n_trials=int(estimates.size),
        n_trials_used=int(defined.size),
        n_trials_failed=n_failed,
        policy=policy,
        seed=seed,
        percentiles=tuple(percentiles),
    )


def run_pba(
    df: pd.DataFrame,
    params: BiasParameters,
    config: Optional[AnalysisConfig] = None,
    cancel: Optional[threading.Event] = None,
) -> SimulationResult:
    """
    Probabilistic bias analysis over config.n_trials trials.

    policy='strict': the error of the lowest failing trial index aborts the
    run and is re-raised, whatever n_jobs is.
    policy='lenient': failed trials are kept as NaN, excluded from the
    median/interval and counted in n_trials_failed.

    `cancel` is checked between trials (between blocks when n_jobs > 1);
    once set, AnalysisCancelled is raised.
    """
    config = config or AnalysisConfig()
    work, outcome_col = prepare_dataset(df, params, config)
    keys = list(build_strata(work, outcome_col=outcome_col, covariates=config.covariates))

    n = config.n_trials
    seqs = np.random.SeedSequence(config.seed).spawn(n)
    estimates = np.full(n, np.nan, dtype=float)

    logger.info(
        "PBA start: %d trials, mechanisms=%s, estimator=%s, n_jobs=%d, seed=%d, policy=%s",
        n, params.mechanisms, config.estimator, config.n_jobs, config.seed, config.policy,
    )

    if config.n_jobs == 1:
        for i in range(n):
            if cancel is not None and cancel.is_set():
                raise AnalysisCancelled(f"Cancelled after {i} of {n} trials.")
            try:
                estimates[i] = _run_trial(seqs[i], work, outcome_col, keys, params, config)
            except TRIAL_ERRORS as e:
                if config.policy == "strict":
                    raise
                logger.debug("Trial %d excluded: %s", i, e)
    else:
        _run_parallel(seqs, work, outcome_col, keys, params, config, estimates, cancel)

    result = summarize(estimates, policy=config.policy, seed=config.seed, percentiles=config.percentiles)

    if result.n_trials_failed:
        logger.warning(
            "%d of %d trials were undefined and excluded from the interval",
            result.n_trials_failed, n,
        )
    logger.info(
        "PBA done: median=%.4g, interval=(%.4g, %.4g), trials used=%d",
        result.point_estimate, result.ci_low, result.ci_high, result.n_trials_used,
    )
    return result


def _run_parallel(
    seqs: List[np.random.SeedSequence],
    df: pd.DataFrame,
    outcome_col: str,
    keys: List[StratumKey],
    params: BiasParameters,
    config: AnalysisConfig,
    estimates: np.ndarray,
    cancel: Optional[threading.Event],
) -> None:
    """
    Runs contiguous blocks of trials in worker processes. In strict mode the
    error re-raised is the one of the lowest failing trial index, held back
    until every block before it has finished.
    """
    n = len(seqs)
    if cancel is not None and cancel.is_set():
        raise AnalysisCancelled(f"Cancelled after 0 of {n} trials.")

    n_blocks = min(n, config.n_jobs * 4)
    blocks = [b.tolist() for b in np.array_split(np.arange(n), n_blocks) if len(b)]
    finished = [False] * len(blocks)
    first_failure: Optional[Tuple[int, Exception]] = None

    ex = ProcessPoolExecutor(max_workers=config.n_jobs)
    try:
        pending = {
            ex.submit(_run_block, b, [seqs[i] for i in b], df, outcome_col, keys, params, config): pos
            for pos, b in enumerate(blocks)
        }
        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for fut in done:
                pos = pending.pop(fut)
                rows = fut.result()
                finished[pos] = True
                for i, value, err in rows:
                    estimates[i] = value
                    if err is None:
                        continue
                    if first_failure is None or i < first_failure[0]:
                        first_failure = (i, err)
                    if config.policy != "strict":
                        logger.debug("Trial %d excluded: %s", i, err)
                logger.debug("Block of %d trials done, %d blocks pending", len(rows), len(pending))

            if config.policy == "strict" and first_failure is not None:
                i, err = first_failure
                if all(finished[pos] for pos, b in enumerate(blocks) if b[0] <= i):
                    raise err
            if pending and cancel is not None and cancel.is_set():
                done_n = sum(len(b) for pos, b in enumerate(blocks) if finished[pos])
                raise AnalysisCancelled(f"Cancelled with {done_n} of {n} trials done.")
    finally:
        ex.shutdown(wait=True, cancel_futures=True)
