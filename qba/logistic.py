# qba/logistic.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from .errors import UndefinedEstimate


def build_design_matrix(
    df: pd.DataFrame,
    outcome_col: str,
    exposure_col: str,
    covariates: Sequence[str],
    add_intercept: bool = True,
) -> Tuple[pd.Series, pd.DataFrame]:
    if outcome_col not in df.columns:
        raise ValueError(f"Missing outcome column: {outcome_col}")
    if exposure_col not in df.columns:
        raise ValueError(f"Missing exposure column: {exposure_col}")

    covariates = list(covariates)
    for c in covariates:
        if c not in df.columns:
            raise ValueError(f"Missing covariate column: {c}")

    # every column is already validated 0/1, so no dummy encoding is needed
    y = pd.to_numeric(df[outcome_col], errors="coerce").astype(float)
    X = df[[exposure_col] + covariates].apply(pd.to_numeric, errors="coerce").astype(float)

    if add_intercept:
        X = sm.add_constant(X, has_constant="add")

    if y.isna().any() or X.isna().any().any():
        raise ValueError("Design matrix has missing values; validate the dataset first.")

    return y, X


def fit_weighted_logit(
    df: pd.DataFrame,
    outcome_col: str,
    exposure_col: str = "a",
    covariates: Optional[Sequence[str]] = None,
    weights: Optional[np.ndarray] = None,
) -> Dict[str, Any]:
    """
    Binomial GLM of outcome on exposure (+ covariates), optionally weighted.
    Weights are inverse selection probabilities when correcting selection
    bias at record level. Returns one row per term with
    term, coef and or.
    """
    y, X = build_design_matrix(df, outcome_col, exposure_col, covariates or [])

    if X[exposure_col].nunique() < 2:
        raise UndefinedEstimate(f"Exposure '{exposure_col}' has no variation in this sample.")
    if y.nunique() < 2:
        raise UndefinedEstimate(f"Outcome '{outcome_col}' has no variation in this sample.")

    model = sm.GLM(y, X, family=sm.families.Binomial(), var_weights=weights)

    try:
        res = model.fit()
    except PerfectSeparationError as e:
        raise UndefinedEstimate(f"Perfect separation in logistic fit: {e}") from e

    params = res.params

    rows: List[Dict[str, Any]] = []
    for term in params.index:
        coef = float(params.loc[term])
        rows.append(
            {
                "term": str(term),
                "coef": coef,
                "or": float(np.exp(coef)),
            }
        )

    return {"n_used": int(len(y)), "weighted": weights is not None, "results": rows}


def exposure_odds_ratio(
    df: pd.DataFrame,
    outcome_col: str,
    exposure_col: str = "a",
    covariates: Optional[Sequence[str]] = None,
    weights: Optional[np.ndarray] = None,
) -> float:
    """Covariate-adjusted exposure odds ratio from fit_weighted_logit."""
    out = fit_weighted_logit(df, outcome_col, exposure_col, covariates, weights)
    row = next(r for r in out["results"] if r["term"] == exposure_col)
    if not np.isfinite(row["or"]):
        raise UndefinedEstimate(f"Exposure odds ratio is not finite: {row['or']}")
    return row["or"]
