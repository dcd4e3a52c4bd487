from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional
import math

from scipy.stats import norm

from .contingency import Contingency2x2


def _z(alpha: float) -> float:
    return float(norm.ppf(1.0 - alpha / 2.0))


def _apply_cc(
    t: Contingency2x2, cc: Optional[float]
) -> tuple[float, float, float, float]:
    """
    Apply continuity correction ONLY if explicitly provided.
    If any cell is zero and cc is None -> return NaNs to signal undefined ratios.
    """
    a, b, c, d = t.a, t.b, t.c, t.d
    if min(a, b, c, d) == 0:
        if cc is None:
            return (float("nan"), float("nan"), float("nan"), float("nan"))
        return (a + cc, b + cc, c + cc, d + cc)
    return (float(a), float(b), float(c), float(d))


def _nan_result(prefix: str, alpha: float, cc: Optional[float]) -> Dict[str, Any]:
    return {
        prefix: float("nan"),
        f"{prefix}_ci_low": float("nan"),
        f"{prefix}_ci_high": float("nan"),
        "alpha": alpha,
        "continuity_correction": cc,
    }


def odds_ratio_and_ci(
    t: Contingency2x2,
    *,
    alpha: float = 0.05,
    continuity_correction: Optional[float] = None,
) -> Dict[str, Any]:
    """Conventional (bias-unadjusted) odds ratio ad/bc with Woolf CI."""
    a, b, c, d = _apply_cc(t, continuity_correction)
    if any(math.isnan(x) for x in (a, b, c, d)) or min(a, b, c, d) <= 0:
        # cc=0 leaves zero cells; log and 1/x are undefined there
        return _nan_result("odds_ratio", alpha, continuity_correction)

    or_ = (a * d) / (b * c)
    se = math.sqrt(1.0 / a + 1.0 / b + 1.0 / c + 1.0 / d)
    z = _z(alpha)
    lo = math.exp(math.log(or_) - z * se)
    hi = math.exp(math.log(or_) + z * se)

    return {
        "odds_ratio": float(or_),
        "odds_ratio_ci_low": float(lo),
        "odds_ratio_ci_high": float(hi),
        "alpha": alpha,
        "continuity_correction": continuity_correction,
    }


def relative_risk_and_ci(
    t: Contingency2x2,
    *,
    alpha: float = 0.05,
    continuity_correction: Optional[float] = None,
) -> Dict[str, Any]:
    a, b, c, d = _apply_cc(t, continuity_correction)
    if any(math.isnan(x) for x in (a, b, c, d)) or a == 0 or b == 0:
        return _nan_result("relative_risk", alpha, continuity_correction)

    risk_exp = a / (a + c)
    risk_unexp = b / (b + d)
    rr = risk_exp / risk_unexp

    # Katz log(RR) SE
    se = math.sqrt((1.0 / a) - (1.0 / (a + c)) + (1.0 / b) - (1.0 / (b + d)))
    z = _z(alpha)
    lo = math.exp(math.log(rr) - z * se)
    hi = math.exp(math.log(rr) + z * se)

    return {
        "relative_risk": float(rr),
        "relative_risk_ci_low": float(lo),
        "relative_risk_ci_high": float(hi),
        "alpha": alpha,
        "continuity_correction": continuity_correction,
    }


def observed_metrics(
    t: Contingency2x2,
    *,
    alpha: float = 0.05,
    continuity_correction: Optional[float] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {"table": asdict(t)}
    out.update(odds_ratio_and_ci(t, alpha=alpha, continuity_correction=continuity_correction))
    out.update(relative_risk_and_ci(t, alpha=alpha, continuity_correction=continuity_correction))
    return out
